
class FolioError(Exception):
    status_code = 500
    reason = "error"

    def to_dict(self):
        return {"success": False, "error": self.reason, "message": str(self)}

# Taxonomy

class ValidationError(FolioError):
    status_code = 400
    reason = "validation"

class NotFoundError(FolioError):
    status_code = 404
    reason = "not_found"

class ConflictError(FolioError):
    status_code = 409
    reason = "conflict"

class UnauthorizedError(FolioError):
    status_code = 403
    reason = "unauthorized"

class RateLimitError(FolioError):
    status_code = 429
    reason = "rate_limited"

# Validation

class InvalidDueDateError(ValidationError):
    reason = "invalid_due_date"

class InvalidRenewalDaysError(ValidationError):
    reason = "invalid_requested_days"

class InvalidActionError(ValidationError):
    reason = "invalid_action"

class BookMismatchError(ValidationError):
    reason = "book_mismatch"

# NotFound

class BookNotFoundError(NotFoundError):
    reason = "book_not_found"

class UserNotFoundError(NotFoundError):
    reason = "user_not_found"

class BorrowalNotFoundError(NotFoundError):
    reason = "no_active_borrowal"

class ReservationNotFoundError(NotFoundError):
    reason = "reservation_not_found"

class RenewalNotFoundError(NotFoundError):
    reason = "renewal_not_found"

# Conflict

class BookUnavailableError(ConflictError):
    reason = "no_copies_available"

class BorrowLimitError(ConflictError):
    reason = "borrow_limit_reached"

class NotBorrowedError(ConflictError):
    reason = "not_borrowed"

class BookAvailableError(ConflictError):
    reason = "book_available"

class AlreadyBorrowedError(ConflictError):
    reason = "already_borrowed"

class DuplicateReservationError(ConflictError):
    reason = "already_reserved"

class ReservationNotActiveError(ConflictError):
    reason = "reservation_not_active"

class ReservationsPendingError(ConflictError):
    reason = "pending_reservations"

class DuplicateRenewalError(ConflictError):
    reason = "duplicate_pending_renewal"

class RenewalProcessedError(ConflictError):
    reason = "already_processed"

class StaleRecordError(ConflictError):
    reason = "concurrent_modification"

# Unauthorized

class NotOwnerError(UnauthorizedError):
    reason = "not_owner"

class StaffRequiredError(UnauthorizedError):
    reason = "staff_required"

class DeliveryError(Exception): pass

class CronAuthError(FolioError):
    status_code = 401
    reason = "unauthenticated"
