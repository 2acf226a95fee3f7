"""Compression options configuration."""

from dataclasses import dataclass

PRESETS = ("screen", "ebook", "printer", "prepress", "default")
COMPATIBILITY_LEVELS = ("1.3", "1.4", "1.5", "1.6", "1.7", "2.0")


@dataclass
class CompressionOptions:
    """Options passed to Ghostscript's pdfwrite device."""

    # Quality/size tradeoff, one of Ghostscript's -dPDFSETTINGS names
    preset: str = "ebook"
    compatibility_level: str = "1.4"

    # Seconds before a running Ghostscript process is killed
    timeout: float = 120.0

    def __post_init__(self):
        """Validate options after initialization."""
        self.preset = self.preset.lstrip("/").lower()
        if self.preset not in PRESETS:
            raise ValueError(f"Preset must be one of: {', '.join(PRESETS)}")
        if self.compatibility_level not in COMPATIBILITY_LEVELS:
            raise ValueError(
                f"Compatibility level must be one of: {', '.join(COMPATIBILITY_LEVELS)}"
            )
        if self.timeout <= 0:
            raise ValueError("Timeout must be greater than 0")

    def to_dict(self) -> dict:
        """Convert options to a dictionary."""
        return {
            "preset": self.preset,
            "compatibility_level": self.compatibility_level,
            "timeout": self.timeout,
        }
