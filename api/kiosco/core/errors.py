from fastapi import status


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Unexpected error"

    def __init__(self, message: str | None = None, *, step: str | None = None, details: str | None = None):
        self.message = message or self.message
        self.step = step
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "step": self.step,
            "details": self.details,
        }


# Auth


class Unauthenticated(AppError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class InvalidCredentials(AppError):
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials"


class InvalidSeedToken(AppError):
    code = "INVALID_SEED_TOKEN"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized"


class Forbidden(AppError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Insufficient role"


# Validation


class ValidationFailed(AppError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class InvalidUserId(AppError):
    code = "INVALID_USER_ID"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid user id"


class SelfDeleteBlocked(AppError):
    code = "SELF_DELETE_BLOCKED"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "You cannot delete your own user"


# Lookups


class ProductNotFound(AppError):
    code = "PRODUCT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Product not found"

    def __init__(self, product_id: str | None = None, **kwargs):
        self.product_id = product_id
        message = f"Product not found: {product_id}" if product_id else None
        super().__init__(message, **kwargs)


class CartProductNotFound(ProductNotFound):
    status_code = status.HTTP_400_BAD_REQUEST


class SaleNotFound(AppError):
    code = "SALE_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Sale not found"


class UserNotFound(AppError):
    code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "User not found"


# Consistency


class InsufficientStock(AppError):
    code = "INSUFFICIENT_STOCK"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_id: str, requested: int, available: int, **kwargs):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_id}. Requested: {requested}, available: {available}",
            details=f"product_id={product_id}",
            **kwargs,
        )


class ProductInUse(AppError):
    code = "PRODUCT_IN_USE"
    status_code = status.HTTP_409_CONFLICT
    message = "Cannot delete a product with recorded sales"


class BarcodeTaken(AppError):
    code = "BARCODE_TAKEN"
    status_code = status.HTTP_409_CONFLICT
    message = "Barcode already assigned to another product"


class UsernameTaken(AppError):
    code = "USERNAME_TAKEN"
    status_code = status.HTTP_409_CONFLICT
    message = "Username already exists"


class AdminAlreadyExists(AppError):
    code = "ADMIN_EXISTS"
    status_code = status.HTTP_409_CONFLICT
    message = "An admin user already exists"


class UserHasSales(AppError):
    code = "USER_HAS_SALES"
    status_code = status.HTTP_409_CONFLICT
    message = "Cannot delete: the user has recorded sales"


# Internal


class TotalIntegrityError(AppError):
    code = "TOTAL_ZERO_WITH_ITEMS"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Sale total failed integrity check"


class BarcodeGenerationFailed(AppError):
    code = "BARCODE_GENERATION_FAILED"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Could not generate a unique barcode"
