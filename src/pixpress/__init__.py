"""Image batch processing modules.

Submodules
----------
errors
    Exception hierarchy shared by every stage.
models
    Statistics, per-item results and metadata snapshots.
resize
    Resize modes and target dimension computation.
codec
    Decode, resample, encode and PNG optimization via Pillow.
metadata
    EXIF inspection and stripping via piexif.
io_utils
    Path checks, image discovery and output naming helpers.
processor
    Single image pipeline.
batch
    Concurrent directory processing.
"""
