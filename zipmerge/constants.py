"""
Copyright 2025 DNAi inc.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

"""
ZIP format constants and engine defaults.

Record signatures, compression method ids, general purpose flags and the
32-bit limits that decide when ZIP64 records are needed, plus the defaults
used by the merge engine (copy buffer size, temporary file naming).
"""

# ZIP record signatures
LOCAL_FILE_HEADER = 0x04034B50  # "PK\x03\x04"
CENTRAL_DIR_HEADER = 0x02014B50  # "PK\x01\x02"
END_OF_CENTRAL_DIR = 0x06054B50  # "PK\x05\x06"
ZIP64_END_OF_CENTRAL_DIR = 0x06064B50  # "PK\x06\x06"
ZIP64_END_OF_CENTRAL_DIR_LOCATOR = 0x07064B50  # "PK\x06\x07"
DATA_DESCRIPTOR = 0x08074B50  # "PK\x07\x08"

# Compression method ids
COMP_STORED = 0
COMP_DEFLATE = 8

# Methods the writer can produce; anything else copied from a source
# archive is re-encoded with DEFAULT_METHOD.
WRITABLE_METHODS = frozenset({COMP_STORED, COMP_DEFLATE})
READABLE_METHODS = WRITABLE_METHODS
DEFAULT_METHOD = COMP_DEFLATE

# Compression method names, as accepted by ZipWriter.add_bytes()
COMPRESSION_STORED = "stored"
COMPRESSION_DEFLATE = "deflate"

COMPRESSION_METHODS = {
    COMPRESSION_STORED: COMP_STORED,
    COMPRESSION_DEFLATE: COMP_DEFLATE,
}

# General purpose bit flags
FLAG_ENCRYPTED = 0x0001
FLAG_DATA_DESCRIPTOR = 0x0008
FLAG_UTF8 = 0x0800

# Version needed to extract / made by
VERSION_DEFAULT = 20
VERSION_ZIP64 = 45
VERSION_MADE_BY_DEFAULT = 63  # Unix, APPNOTE 6.3

# Classic ZIP limits
MAX_FILE_SIZE = 0xFFFFFFFF
MAX_ENTRIES = 0xFFFF
MAX_CD_SIZE = 0xFFFFFFFF
MAX_CD_OFFSET = 0xFFFFFFFF
MAX_NAME_LENGTH = 0xFFFF

# Extra field header ids
ZIP64_EXTRA_FIELD_TAG = 0x0001

# ZIP64 end of central directory locator size (signature included)
ZIP64_LOCATOR_SIZE = 20

# Largest trailing comment an EOCD record may carry
MAX_COMMENT_LENGTH = 0xFFFF

# External attributes written for files and directories (Unix mode << 16)
FILE_ATTRIBUTES = 0o100644 << 16
DIR_ATTRIBUTES = 0o040755 << 16

# Engine defaults
COPY_BUFFER_SIZE = 64 * 1024
TEMP_FILE_PREFIX = "zips"
TEMP_FILE_SUFFIX = ".zip"
PATH_SEPARATOR = "/"
