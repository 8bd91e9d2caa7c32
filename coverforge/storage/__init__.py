from .assets import ALLOWED_EXT, FONT_EXT, MAX_UPLOAD_BYTES, Asset, AssetStore, check_upload, safe_slug

__all__ = [
    "ALLOWED_EXT",
    "FONT_EXT",
    "MAX_UPLOAD_BYTES",
    "Asset",
    "AssetStore",
    "check_upload",
    "safe_slug",
]
