"""
Configuration constants used throughout simdgen
"""

# File handling
DEFAULT_FILE_ENCODING = "utf-8"
SOURCE_FILE_EXTENSION = ".go"
OUTPUT_FILE_EXTENSION = ".c"
DEFAULT_SOURCE_NAME = "<input>"

# Parser configuration
PARSER_ALGORITHM = "earley"
PARSER_LEXER = "basic"
GRAMMAR_FILE = "grammar.lark"

# Packages recognised in kernel source
VOCABULARY_PACKAGE = "hwy"
MATH_PACKAGES = ("math", "stdmath")
BITS_PACKAGE = "bits"
PANIC_FUNCTION = "panic"

# Function naming: lower(name) minus this prefix, then _c_<suffix>_<arch>
BASE_NAME_PREFIX = "base"

# Synthetic local names (numbered by the per-invocation counter)
ACCUMULATOR_PREFIX = "_pacc_"
LOAD4_PREFIX = "_load4_"
GETLANE_BUFFER_PREFIX = "_getlane_buf_"
RANGE_ITER_PREFIX = "_r_"
COPY_INDEX_PREFIX = "_ci_"

# Pointer-passed parameter naming
SCALAR_POINTER_PREFIX = "p"
OUTPUT_POINTER_PREFIX = "pout_"
LENGTH_POINTER_PREFIX = "plen_"
LENGTH_VAR_PREFIX = "len_"
DEFAULT_RESULT_NAME = "result"

# Emitted C
INDENT = "    "
NO_VECTORIZE_PRAGMA = "#pragma clang loop vectorize(disable) interleave(disable)"
FALLBACK_SCALAR_C_TYPE = "unsigned long"

# Environment variables
ENV_DUMP_IR = "SIMDGEN_DUMP_IR"
