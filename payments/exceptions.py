class PaymentError(Exception):
    status_code = 400
    default_message = "Payment error"

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_response_data(self):
        return {"success": False, "message": self.message, **self.extra}


class FeeApplicationNotFound(PaymentError):
    status_code = 404
    default_message = "One or more fee applications not found or not authorized"


class FeeAlreadyPaid(PaymentError):
    default_message = "Some fees have already been paid"


class PaymentAlreadyPending(PaymentError):
    default_message = "Payments are already pending for some of these fees"

    def __init__(self, pending_reference_ids, message=None):
        super().__init__(message, pending_payments=list(pending_reference_ids))


class AmountMismatch(PaymentError):
    pass


class PaymentNotFound(PaymentError):
    status_code = 404
    default_message = "Payment not found"


class GatewayError(PaymentError):
    status_code = 500
    default_message = "Payment gateway request failed"
