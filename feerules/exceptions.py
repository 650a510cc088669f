class FeeRuleError(Exception):
    status_code = 400
    default_message = "Fee rule error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class FeeRuleNotApplicable(FeeRuleError):
    default_message = "Fee rule cannot be applied"
