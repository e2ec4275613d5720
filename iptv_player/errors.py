class CatalogError(Exception):
    """Base class for every catalog condition surfaced to callers."""

    status_code = 500


class NotFound(CatalogError):
    status_code = 404


class CatalogMissing(NotFound):
    def __init__(self, message: str = "No playlist found. Upload an M3U file first."):
        super().__init__(message)


class UnknownType(NotFound):
    status_code = 400

    def __init__(self, type_name: str):
        super().__init__(f"Invalid type '{type_name}'. Use: channels, movies or series")
        self.type_name = type_name


class UnknownCategory(NotFound):
    def __init__(self, category: str):
        super().__init__(f"Category not found: {category}")
        self.category = category


class UploadRejected(CatalogError):
    status_code = 400


class UploadInProgress(CatalogError):
    status_code = 409

    def __init__(self, message: str = "Another playlist is being processed. Try again shortly."):
        super().__init__(message)
