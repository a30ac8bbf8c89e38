from importlib.metadata import PackageNotFoundError, version


async def get_app_version() -> str:
    """Get the version from the installed package metadata."""
    try:
        return version("s3-tabular")
    except PackageNotFoundError:
        return "unknown"
