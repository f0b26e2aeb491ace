"""
Bluetooth UUID normalization.

Advertisement data, GATT enumeration and profile records spell UUIDs
differently (16-bit short forms, upper case, with or without dashes).
Everything is compared in the 128-bit lower-case dashed form.
"""

# Bluetooth SIG base UUID without the leading 32 bits
BASE_UUID_SUFFIX = "00001000800000805f9b34fb"


def normalize(uuid: str) -> str:
    """
    Canonicalize a Bluetooth UUID.

    16-bit ("180a") and 32-bit ("0000180a") short forms are expanded into the
    Bluetooth base UUID. Strings that are not valid UUIDs are returned
    lower-cased so exact comparisons still work.

    Args:
        uuid: UUID in any common spelling

    Returns:
        "xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx" form, or the lower-cased input
    """
    hex_str = uuid.replace("-", "").lower()

    if len(hex_str) == 4:
        hex_str = f"0000{hex_str}{BASE_UUID_SUFFIX}"
    elif len(hex_str) == 8:
        hex_str = f"{hex_str}{BASE_UUID_SUFFIX}"

    if len(hex_str) != 32:
        return uuid.lower()

    return (
        f"{hex_str[0:8]}-{hex_str[8:12]}-{hex_str[12:16]}-"
        f"{hex_str[16:20]}-{hex_str[20:]}"
    )


def short_uuid(uuid: str) -> str:
    """Return the 16-bit form of a SIG-base UUID, or the normalized UUID."""
    full = normalize(uuid)
    hex_str = full.replace("-", "")
    if len(hex_str) == 32 and hex_str.startswith("0000") and hex_str.endswith(BASE_UUID_SUFFIX):
        return hex_str[4:8]
    return full
