# Framing
PICKLE_UINT32_SIZE = 4
SIZE_PICKLE_LEN = 8  # u32 payload size (always 4) + u32 header size
ALIGNMENT = 4

# Limits
MAX_PACKED_FILE_SIZE = 0xFFFFFFFF  # sizes are written as u32 by other asar tools
MAX_SAFE_INTEGER = 2**53 - 1  # largest integer a JSON number carries exactly
MAX_LINK_DEPTH = 40  # links followed per lookup

# Integrity
INTEGRITY_ALGORITHM = "SHA256"
INTEGRITY_BLOCK_SIZE = 4 * 1024 * 1024  # 4 MiB
BUFFER_SIZE = 64 * 1024

# Side-by-side directory holding files excluded from the data section
UNPACKED_SUFFIX = ".unpacked"
