"""
ESC/POS command builders.

Only the handful of commands needed for probing: reset, print mode,
underline, feed and cut. Every test buffer is self-contained (starts with
ESC @) so a probe never depends on state left by a previous one.
"""

from dataclasses import dataclass

DEFAULT_LABEL = "BLE PROBE"


class ESCPOSCommands:
    """Static builders for ESC/POS byte sequences."""

    ESC = 0x1B
    GS = 0x1D

    # ESC ! n print mode bits
    MODE_NORMAL = 0x00
    MODE_BOLD = 0x08
    MODE_DOUBLE_HEIGHT = 0x10
    MODE_DOUBLE_WIDTH = 0x20

    @staticmethod
    def initialize() -> bytes:
        """ESC @ - reset printer state."""
        return bytes([0x1B, 0x40])

    @staticmethod
    def print_mode(mode: int) -> bytes:
        """ESC ! n - select print mode."""
        return bytes([0x1B, 0x21, mode & 0xFF])

    @staticmethod
    def underline(on: bool) -> bytes:
        """ESC - n - underline on/off."""
        return bytes([0x1B, 0x2D, 0x01 if on else 0x00])

    @staticmethod
    def feed(dots: int = 64) -> bytes:
        """ESC J n - feed paper by n dots."""
        return bytes([0x1B, 0x4A, dots & 0xFF])

    @staticmethod
    def partial_cut() -> bytes:
        """GS V A - partial cut (trailing LF for printers without a cutter)."""
        return bytes([0x1D, 0x56, 0x41, 0x0A])

    @staticmethod
    def text_line(text: str) -> bytes:
        return f"{text}\n".encode("ascii")


def build_test_print(label: str = DEFAULT_LABEL) -> bytes:
    """
    Build the ESC/POS test print.

    Layout: ESC @, ESC ! 0, "<label>\\n", ESC J 64, GS V A.
    """
    return (
        ESCPOSCommands.initialize()
        + ESCPOSCommands.print_mode(ESCPOSCommands.MODE_NORMAL)
        + ESCPOSCommands.text_line(label)
        + ESCPOSCommands.feed(64)
        + ESCPOSCommands.partial_cut()
    )


@dataclass(frozen=True)
class CapabilityTest:
    """One attribute test with a yes/no visual signature."""

    key: str
    enable: bytes
    disable: bytes
    question: str

    def build(self, label: str) -> bytes:
        return (
            ESCPOSCommands.initialize()
            + self.enable
            + ESCPOSCommands.text_line(label)
            + self.disable
            + ESCPOSCommands.feed(64)
            + ESCPOSCommands.partial_cut()
        )


# Code-page tests are left out: whether a glyph "looks right" depends on the
# reader's language, so it has no universal yes/no answer.
CAPABILITY_TESTS = (
    CapabilityTest(
        key="bold",
        enable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_BOLD),
        disable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_NORMAL),
        question="Does the text on the paper look noticeably thicker or heavier?",
    ),
    CapabilityTest(
        key="doubleWide",
        enable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_DOUBLE_WIDTH),
        disable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_NORMAL),
        question="Is the text stretched sideways, taking up noticeably more width on the paper?",
    ),
    CapabilityTest(
        key="doubleHeight",
        enable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_DOUBLE_HEIGHT),
        disable=ESCPOSCommands.print_mode(ESCPOSCommands.MODE_NORMAL),
        question="Is the text taller, taking up noticeably more vertical space on the paper?",
    ),
    CapabilityTest(
        key="underline",
        enable=ESCPOSCommands.underline(True),
        disable=ESCPOSCommands.underline(False),
        question="Is there a visible line drawn directly beneath the text?",
    ),
)
