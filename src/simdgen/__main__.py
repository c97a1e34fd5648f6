"""CLI entry point: run `simdgen kernel.go -t NEON:float32` or `python -m simdgen ...`."""

import sys
from pathlib import Path


def _list_profiles(registry) -> None:
    for profile in registry:
        primary = profile.primary_tier()
        tiers = ", ".join(f"{t.tier.value}x{t.lanes}" for t in profile.tiers)
        sys.stdout.write(
            f"{profile.architecture}:{profile.element_type}  "
            f"primary={primary.tier.value} ({primary.lanes} lanes)  tiers=[{tiers}]\n"
        )


def main(argv=None) -> int:
    import argparse
    import logging
    from .compiler.driver import CompilerDriver, write_units
    from .ir.serialization import serialize_ir
    from .passes.base import LoweringOptions
    from .profiles.base import Tier
    from .profiles.registry import ProfileRegistry
    from .shared.errors import ConfigurationError

    parser = argparse.ArgumentParser(
        prog="simdgen",
        description="Lower portable SIMD kernels to C with target intrinsics.",
    )
    parser.add_argument("file", type=Path, nargs="?", help="Path to the kernel source (.go)")
    parser.add_argument("-t", "--target", action="append", default=[], metavar="ARCH:ELEM",
                        help="Target profile, e.g. NEON:float32 (repeatable; default: all)")
    parser.add_argument("-o", "--output-dir", type=Path,
                        help="Write one .c file per function and target here (default: stdout)")
    parser.add_argument("--function", action="append", default=[], metavar="NAME",
                        help="Only lower this function (repeatable)")
    parser.add_argument("--strict", action="store_true",
                        help="Fail on unsupported constructs instead of emitting placeholders")
    parser.add_argument("--tier", choices=[t.value for t in Tier if t is not Tier.SCALAR],
                        help="Lower at this register class instead of the primary tier")
    parser.add_argument("--dump-ir", action="store_true",
                        help="Print the parsed IR as S-expressions and exit")
    parser.add_argument("--list-profiles", action="store_true",
                        help="List registered intrinsic profiles and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list_profiles:
        _list_profiles(ProfileRegistry.default())
        return 0
    if args.file is None:
        parser.error("the following arguments are required: file")

    path = args.file.resolve()
    if not path.exists():
        sys.stderr.write(f"simdgen: error: file not found: {path}\n")
        return 1
    if not path.is_file():
        sys.stderr.write(f"simdgen: error: not a file: {path}\n")
        return 1

    driver = CompilerDriver()
    if args.dump_ir:
        from .shared.errors import ParseError
        from .utils.io_utils import read_source_file
        try:
            ir = driver.parser.parse(read_source_file(path), str(path))
        except ParseError as e:
            sys.stderr.write(f"{e}\n")
            return 1
        sys.stdout.write(serialize_ir(ir) + "\n")
        return 0

    options = LoweringOptions(strict=args.strict, tier=Tier(args.tier) if args.tier else None)
    try:
        result = driver.translate_file(path, args.target, options, args.function)
    except ConfigurationError as e:
        sys.stderr.write(f"simdgen: error: {e}\n")
        return 1

    result.reporter.print_diagnostics()
    if result.has_errors():
        return 1

    if args.output_dir is not None:
        for written in write_units(result.units, args.output_dir):
            sys.stderr.write(f"simdgen: wrote {written}\n")
    else:
        sys.stdout.write("\n".join(unit.text for unit in result.units))
    return 0


if __name__ == "__main__":
    sys.exit(main())
