"""
MSTAT Format Specification
==========================

Layout (all integers little-endian):
    0x00 - 0x07   magic "MSTAT", NUL padded     <- File identification
    0x08 - 0x0B   field count (u32)             <- Entries in the field table
    0x0C - 0x0F   end-of-header offset (u32)    <- Where the first record starts
    0x10 - EOH    field table                   <- Per field: u32 length + name bytes
    EOH  - EOF    records                       <- Back-to-back, in field table order

Record slots:
    pid          i32
    timestamp    f64   seconds since sampling started
    <metric>     u64   byte count

Design Decisions:
    - The header is written once at creation and never rewritten
    - No record count is stored; readers scan to end-of-stream
    - The field table is the contract: readers decode records in stored order
    - Names are looked up, never offsets, so the default schema can grow
"""

# Magic bytes - first slot of every .mstat file
MAGIC = b"MSTAT"
MAGIC_SLOT_SIZE = 0x08

# Fixed header slots
FIELD_COUNT_OFFSET = 0x08
END_OF_HEADER_OFFSET = 0x0C
HEADER_PREFIX_SIZE = 0x10

U32 = "<I"
LENGTH_PREFIX_SIZE = 4

# Refuse to allocate tables beyond this many entries
MAX_FIELDS = 0xFFFF

# struct codes per field name; anything not listed is a u64 byte count
FIELD_FORMATS = {
    "pid": "i",
    "timestamp": "d",
}
DEFAULT_FIELD_FORMAT = "Q"

# Field order of a freshly created file
DEFAULT_FIELD_NAMES = (
    "pid",
    "timestamp",
    "rss",
    "pss",
    "pss_anon",
    "pss_file",
    "pss_shmem",
    "shared_clean",
    "shared_dirty",
    "private_clean",
    "private_dirty",
    "referenced",
    "anonymous",
    "lazy_free",
    "anon_huge_pages",
    "shmem_pmd_mapped",
    "file_pmd_mapped",
    "shared_hugetlb",
    "private_hugetlb",
    "swap",
    "swap_pss",
    "locked",
)

# smaps_rollup key -> record field
SMAPS_KEYS = {
    "Rss": "rss",
    "Pss": "pss",
    "Pss_Anon": "pss_anon",
    "Pss_File": "pss_file",
    "Pss_Shmem": "pss_shmem",
    "Shared_Clean": "shared_clean",
    "Shared_Dirty": "shared_dirty",
    "Private_Clean": "private_clean",
    "Private_Dirty": "private_dirty",
    "Referenced": "referenced",
    "Anonymous": "anonymous",
    "LazyFree": "lazy_free",
    "AnonHugePages": "anon_huge_pages",
    "ShmemPmdMapped": "shmem_pmd_mapped",
    "FilePmdMapped": "file_pmd_mapped",
    "Shared_Hugetlb": "shared_hugetlb",
    "Private_Hugetlb": "private_hugetlb",
    "Swap": "swap",
    "SwapPss": "swap_pss",
    "Locked": "locked",
}

# File extension
EXTENSION = ".mstat"
