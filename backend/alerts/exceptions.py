"""
Alert Engine Exceptions
"""


class AlertEngineError(Exception):
    """Base class for alert engine errors"""


class DuplicateRuleError(AlertEngineError):
    """A rule with the same id is already registered"""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule already registered: {rule_id}")
        self.rule_id = rule_id
