from dataclasses import asdict, dataclass
from typing import Dict


@dataclass
class FormErrors:
    """Base for per-field validation results. Subclasses declare one Optional[str] per field."""

    def is_valid(self) -> bool:
        return not self.as_dict()

    def as_dict(self) -> Dict[str, str]:
        return {name: message for name, message in asdict(self).items() if message}
