"""
Inlined math helper library.

The downstream assembler rejects calls to external symbols, so every
transcendental the kernels use is emitted as a ``static inline`` C function
next to the lowered code. Helpers are generated from one algorithm
description per function and a ``MathDialect`` per compute vector type:

- exp: ``x = k*ln2 + r`` with ln2 split hi/lo, Taylor polynomial in ``r``
  (degree 6 for f32, 12 for f64), scaled by ``2^k`` assembled from exponent
  bits; overflow gives +inf and underflow 0.
- log: exponent/mantissa split, mantissa folded into ``[sqrt(1/2), sqrt(2))``,
  ``f = m - 1``, ``s = f / (2 + f)`` and an even polynomial in ``s``, plus
  ``e*ln2``.
- sigmoid: ``1 / (1 + exp(-x))``.
- erf: Abramowitz-Stegun 7.1.26 with odd symmetry.

The ``reference_*`` functions evaluate the same algorithms with numpy so the
generated code can be checked against numpy/scipy without a C compiler.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..passes.base import HelperRef
from ..shared.errors import SimdgenImplementationError

logger = logging.getLogger(__name__)

LN2 = 0.6931471805599453
SQRT2 = 1.4142135623730951

ERF_P = 0.3275911
ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)

# log(1+f) = f - f*f/2 + s*(f*f/2 + R(s*s)), R(z) = z*(Lg1 + z*(Lg2 + ...))
LOG_LG = (
    6.666666666666735130e-01,
    3.999999999940941908e-01,
    2.857142874366239149e-01,
    2.222219843214978396e-01,
    1.818357216161805012e-01,
    1.531383769920937332e-01,
    1.479819860511658591e-01,
)

MATH_DEPENDENCIES: Dict[str, Tuple[str, ...]] = {
    "exp": (),
    "log": (),
    "sigmoid": ("exp",),
    "erf": ("exp",),
}


@dataclass(frozen=True)
class PrecisionConstants:
    """Scalar types and algorithm constants of one helper precision."""
    c_type: str
    int_c_type: str
    uint_c_type: str
    byte_size: int
    dtype: type
    int_dtype: type
    suffix: str
    infinity: str
    exp_overflow: float
    exp_underflow: float
    inv_ln2: float
    ln2_hi: float
    ln2_lo: float
    exp_coeffs: Tuple[float, ...]
    exponent_bias: int
    mantissa_bits: int
    exponent_mask: str
    mantissa_mask: str
    one_bits: str
    log_terms: int

    @property
    def rint(self) -> str:
        return "__builtin_rintf" if self.suffix else "__builtin_rint"


PRECISIONS: Dict[str, PrecisionConstants] = {
    "f32": PrecisionConstants(
        c_type="float", int_c_type="int", uint_c_type="unsigned int", byte_size=4,
        dtype=np.float32, int_dtype=np.int32, suffix="f", infinity="(1.0f / 0.0f)",
        exp_overflow=88.72283905206835, exp_underflow=-87.3365447505531,
        inv_ln2=1.44269504088896341, ln2_hi=0.693359375, ln2_lo=-2.12194440e-4,
        exp_coeffs=(1 / 720, 1 / 120, 1 / 24, 1 / 6, 0.5, 1.0, 1.0),
        exponent_bias=127, mantissa_bits=23,
        exponent_mask="0xFF", mantissa_mask="0x007FFFFF", one_bits="0x3F800000",
        log_terms=4,
    ),
    "f64": PrecisionConstants(
        c_type="double", int_c_type="long", uint_c_type="unsigned long", byte_size=8,
        dtype=np.float64, int_dtype=np.int64, suffix="", infinity="(1.0 / 0.0)",
        exp_overflow=709.782712893384, exp_underflow=-708.3964185322641,
        inv_ln2=1.4426950408889634,
        ln2_hi=6.93147180369123816490e-01, ln2_lo=1.90821492927058500170e-10,
        exp_coeffs=(1 / 479001600, 1 / 39916800, 1 / 3628800, 1 / 362880, 1 / 40320,
                    1 / 5040, 1 / 720, 1 / 120, 1 / 24, 1 / 6, 0.5, 1.0, 1.0),
        exponent_bias=1023, mantissa_bits=52,
        exponent_mask="0x7FF", mantissa_mask="0x000FFFFFFFFFFFFF",
        one_bits="0x3FF0000000000000",
        log_terms=7,
    ),
}


def c_literal(value: float, precision: str) -> str:
    """Shortest round-tripping C literal of ``value`` at ``precision``."""
    consts = PRECISIONS[precision]
    text = np.format_float_positional(consts.dtype(value), unique=True, trim='0')
    return text + consts.suffix


# ============================================================================
# Vector dialects
# ============================================================================

def _t(name: str, *fields: str) -> str:
    return f"{name}(" + ", ".join("{%s}" % f for f in fields) + ")"


@dataclass(frozen=True)
class MathDialect:
    """
    Intrinsic templates for one compute vector type.

    Float operands are ``{a}``, ``{b}``, ``{c}``; ``fma`` computes
    ``a*b + c``; ``select`` takes ``{m}``, ``{yes}``, ``{no}``; integer
    shifts take an immediate ``{n}``.
    """
    vec_type: str
    int_vec_type: str
    mask_type: str
    precision: str
    set1: str
    add: str
    sub: str
    mul: str
    div: str
    neg: str
    fabs: str
    fma: str
    round_nearest: str
    to_int: str
    int_to_float: str
    as_int: str
    as_float: str
    int_set1: str
    int_add: str
    int_sub: str
    int_and: str
    int_or: str
    int_shl: str
    int_shr: str
    greater: str
    less: str
    select: str

    def __call__(self, op: str, **operands) -> str:
        return getattr(self, op).format(**operands)

    def lit(self, value: float) -> str:
        return self("set1", a=c_literal(value, self.precision))


def _neon_dialect(vec: str, ivec: str, mask: str, fs: str, is_: str) -> MathDialect:
    return MathDialect(
        vec_type=vec, int_vec_type=ivec, mask_type=mask, precision=fs,
        set1=_t(f"vdupq_n_{fs}", "a"),
        add=_t(f"vaddq_{fs}", "a", "b"),
        sub=_t(f"vsubq_{fs}", "a", "b"),
        mul=_t(f"vmulq_{fs}", "a", "b"),
        div=_t(f"vdivq_{fs}", "a", "b"),
        neg=_t(f"vnegq_{fs}", "a"),
        fabs=_t(f"vabsq_{fs}", "a"),
        fma=_t(f"vfmaq_{fs}", "c", "a", "b"),
        round_nearest=_t(f"vrndnq_{fs}", "a"),
        to_int=_t(f"vcvtnq_{is_}_{fs}", "a"),
        int_to_float=_t(f"vcvtq_{fs}_{is_}", "a"),
        as_int=_t(f"vreinterpretq_{is_}_{fs}", "a"),
        as_float=_t(f"vreinterpretq_{fs}_{is_}", "a"),
        int_set1=_t(f"vdupq_n_{is_}", "a"),
        int_add=_t(f"vaddq_{is_}", "a", "b"),
        int_sub=_t(f"vsubq_{is_}", "a", "b"),
        int_and=_t(f"vandq_{is_}", "a", "b"),
        int_or=_t(f"vorrq_{is_}", "a", "b"),
        int_shl=_t(f"vshlq_n_{is_}", "a", "n"),
        int_shr=_t(f"vshrq_n_{is_}", "a", "n"),
        greater=_t(f"vcgtq_{fs}", "a", "b"),
        less=_t(f"vcltq_{fs}", "a", "b"),
        select=_t(f"vbslq_{fs}", "m", "yes", "no"),
    )


def _avx_dialect(vec: str, ivec: str, prefix: str, si: str) -> MathDialect:
    """SSE/AVX2 single precision; ``prefix`` is ``_mm`` or ``_mm256``."""
    return MathDialect(
        vec_type=vec, int_vec_type=ivec, mask_type=vec, precision="f32",
        set1=_t(f"{prefix}_set1_ps", "a"),
        add=_t(f"{prefix}_add_ps", "a", "b"),
        sub=_t(f"{prefix}_sub_ps", "a", "b"),
        mul=_t(f"{prefix}_mul_ps", "a", "b"),
        div=_t(f"{prefix}_div_ps", "a", "b"),
        neg=prefix + "_sub_ps(" + prefix + "_setzero_ps(), {a})",
        fabs=prefix + "_andnot_ps(" + prefix + "_set1_ps(-0.0f), {a})",
        fma=_t(f"{prefix}_fmadd_ps", "a", "b", "c"),
        round_nearest=prefix + "_round_ps({a}, _MM_FROUND_TO_NEAREST_INT | _MM_FROUND_NO_EXC)",
        to_int=_t(f"{prefix}_cvtps_epi32", "a"),
        int_to_float=_t(f"{prefix}_cvtepi32_ps", "a"),
        as_int=_t(f"{prefix}_castps_{si}", "a"),
        as_float=_t(f"{prefix}_cast{si}_ps", "a"),
        int_set1=_t(f"{prefix}_set1_epi32", "a"),
        int_add=_t(f"{prefix}_add_epi32", "a", "b"),
        int_sub=_t(f"{prefix}_sub_epi32", "a", "b"),
        int_and=_t(f"{prefix}_and_{si}", "a", "b"),
        int_or=_t(f"{prefix}_or_{si}", "a", "b"),
        int_shl=_t(f"{prefix}_slli_epi32", "a", "n"),
        int_shr=_t(f"{prefix}_srli_epi32", "a", "n"),
        greater=prefix + "_cmp_ps({a}, {b}, _CMP_GT_OQ)",
        less=prefix + "_cmp_ps({a}, {b}, _CMP_LT_OQ)",
        select=_t(f"{prefix}_blendv_ps", "no", "yes", "m"),
    )


def _avx512_dialect(vec: str, mask: str, fs: str, es: str, precision: str) -> MathDialect:
    """AVX-512 with lane suffix ``fs`` (ps/pd) and integer suffix ``es`` (epi32/epi64)."""
    p = "_mm512"
    return MathDialect(
        vec_type=vec, int_vec_type="__m512i", mask_type=mask, precision=precision,
        set1=_t(f"{p}_set1_{fs}", "a"),
        add=_t(f"{p}_add_{fs}", "a", "b"),
        sub=_t(f"{p}_sub_{fs}", "a", "b"),
        mul=_t(f"{p}_mul_{fs}", "a", "b"),
        div=_t(f"{p}_div_{fs}", "a", "b"),
        neg=f"{p}_sub_{fs}({p}_setzero_{fs}(), " + "{a})",
        fabs=_t(f"{p}_abs_{fs}", "a"),
        fma=_t(f"{p}_fmadd_{fs}", "a", "b", "c"),
        round_nearest=f"{p}_roundscale_{fs}(" + "{a}, _MM_FROUND_TO_NEAREST_INT)",
        to_int=_t(f"{p}_cvt{fs}_{es}", "a"),
        int_to_float=_t(f"{p}_cvt{es}_{fs}", "a"),
        as_int=_t(f"{p}_cast{fs}_si512", "a"),
        as_float=_t(f"{p}_castsi512_{fs}", "a"),
        int_set1=_t(f"{p}_set1_{es}", "a"),
        int_add=_t(f"{p}_add_{es}", "a", "b"),
        int_sub=_t(f"{p}_sub_{es}", "a", "b"),
        int_and=_t(f"{p}_and_si512", "a", "b"),
        int_or=_t(f"{p}_or_si512", "a", "b"),
        int_shl=_t(f"{p}_slli_{es}", "a", "n"),
        int_shr=_t(f"{p}_srli_{es}", "a", "n"),
        greater=f"{p}_cmp_{fs}_mask(" + "{a}, {b}, _CMP_GT_OQ)",
        less=f"{p}_cmp_{fs}_mask(" + "{a}, {b}, _CMP_LT_OQ)",
        select=_t(f"{p}_mask_blend_{fs}", "m", "no", "yes"),
    )


DIALECTS: Dict[str, MathDialect] = {
    d.vec_type: d for d in (
        _neon_dialect("float32x4_t", "int32x4_t", "uint32x4_t", "f32", "s32"),
        _neon_dialect("float64x2_t", "int64x2_t", "uint64x2_t", "f64", "s64"),
        _avx_dialect("__m128", "__m128i", "_mm", "si128"),
        _avx_dialect("__m256", "__m256i", "_mm256", "si256"),
        _avx512_dialect("__m512", "__mmask16", "ps", "epi32", "f32"),
        _avx512_dialect("__m512d", "__mmask8", "pd", "epi64", "f64"),
    )
}


def dialect_for(vec_type: Optional[str]) -> Optional[MathDialect]:
    if vec_type is None:
        return None
    return DIALECTS.get(vec_type)


# ============================================================================
# Generators
# ============================================================================

def _function(ret_type: str, name: str, param: str, body: Sequence[str]) -> str:
    lines = [f"static inline {ret_type} {name}({param}) {{"]
    lines.extend(f"    {line}" for line in body)
    lines.append("}")
    return "\n".join(lines)


def _horner(acc: str, coeffs: Sequence[str], var: str, step) -> List[str]:
    return [f"{acc} = {step(acc, var, c)};" for c in coeffs]


def _vector_pow2(d: MathDialect, kf: str, bias: str, mantissa_bits: int) -> str:
    return d("as_float", a=d("int_shl", a=d("int_add", a=d("to_int", a=kf), b=bias), n=mantissa_bits))


def _vector_exp(d: MathDialect, name: str) -> str:
    k = PRECISIONS[d.precision]
    V, M = d.vec_type, d.mask_type
    bias = d("int_set1", a=str(k.exponent_bias))
    body = [
        f"{M} over = {d('greater', a='x', b=d.lit(k.exp_overflow))};",
        f"{M} under = {d('less', a='x', b=d.lit(k.exp_underflow))};",
        f"{V} kf = {d('round_nearest', a=d('mul', a='x', b=d.lit(k.inv_ln2)))};",
        f"{V} r = {d('sub', a='x', b=d('mul', a='kf', b=d.lit(k.ln2_hi)))};",
        f"r = {d('sub', a='r', b=d('mul', a='kf', b=d.lit(k.ln2_lo)))};",
        f"{V} ep = {d.lit(k.exp_coeffs[0])};",
    ]
    body += _horner("ep", [d.lit(c) for c in k.exp_coeffs[1:]], "r",
                    lambda acc, var, c: d("fma", a=acc, b=var, c=c))
    body += [
        # 2^k as two halves so k near the overflow bound stays representable
        f"{V} kh = {d('round_nearest', a=d('mul', a='kf', b=d.lit(0.5)))};",
        f"{V} kr = {d('sub', a='kf', b='kh')};",
        f"{V} scale_h = {_vector_pow2(d, 'kh', bias, k.mantissa_bits)};",
        f"{V} scale_r = {_vector_pow2(d, 'kr', bias, k.mantissa_bits)};",
        f"{V} result = {d('mul', a=d('mul', a='ep', b='scale_h'), b='scale_r')};",
        f"result = {d('select', m='over', yes=d('set1', a=k.infinity), no='result')};",
        f"result = {d('select', m='under', yes=d.lit(0.0), no='result')};",
        "return result;",
    ]
    return _function(V, name, f"{V} x", body)


def _vector_log(d: MathDialect, name: str) -> str:
    k = PRECISIONS[d.precision]
    V, I, M = d.vec_type, d.int_vec_type, d.mask_type
    lg = [d.lit(c) for c in LOG_LG[:k.log_terms]]
    exponent = d("int_sub",
                 a=d("int_and", a=d("int_shr", a="bits", n=k.mantissa_bits),
                     b=d("int_set1", a=k.exponent_mask)),
                 b=d("int_set1", a=str(k.exponent_bias)))
    mantissa = d("int_or", a=d("int_and", a="bits", b=d("int_set1", a=k.mantissa_mask)),
                 b=d("int_set1", a=k.one_bits))
    body = [
        f"{V} one = {d.lit(1.0)};",
        f"{I} bits = {d('as_int', a='x')};",
        f"{V} e = {d('int_to_float', a=exponent)};",
        f"{V} m = {d('as_float', a=mantissa)};",
        f"{M} big = {d('greater', a='m', b=d.lit(SQRT2))};",
        f"m = {d('select', m='big', yes=d('mul', a='m', b=d.lit(0.5)), no='m')};",
        f"e = {d('select', m='big', yes=d('add', a='e', b='one'), no='e')};",
        f"{V} f = {d('sub', a='m', b='one')};",
        f"{V} s = {d('div', a='f', b=d('add', a=d.lit(2.0), b='f'))};",
        f"{V} z = {d('mul', a='s', b='s')};",
        f"{V} R = {lg[-1]};",
    ]
    body += _horner("R", list(reversed(lg[:-1])), "z",
                    lambda acc, var, c: d("fma", a=acc, b=var, c=c))
    body += [
        f"R = {d('mul', a='R', b='z')};",
        f"{V} hfsq = {d('mul', a=d.lit(0.5), b=d('mul', a='f', b='f'))};",
        f"{V} result = {d('add', a=d('sub', a='f', b='hfsq'), b=d('mul', a='s', b=d('add', a='hfsq', b='R')))};",
        f"return {d('fma', a='e', b=d.lit(LN2), c='result')};",
    ]
    return _function(V, name, f"{V} x", body)


def _vector_sigmoid(d: MathDialect, name: str) -> str:
    V = d.vec_type
    exp_name = HelperRef("vector", "exp", d.precision).c_name
    body = [
        f"{V} one = {d.lit(1.0)};",
        f"{V} exp_neg = {exp_name}({d('neg', a='x')});",
        f"return {d('div', a='one', b=d('add', a='one', b='exp_neg'))};",
    ]
    return _function(V, name, f"{V} x", body)


def _vector_erf(d: MathDialect, name: str) -> str:
    V, M = d.vec_type, d.mask_type
    exp_name = HelperRef("vector", "exp", d.precision).c_name
    coeffs = [d.lit(a) for a in reversed(ERF_A)]
    body = [
        f"{V} one = {d.lit(1.0)};",
        f"{V} ax = {d('fabs', a='x')};",
        f"{M} negative = {d('less', a='x', b=d.lit(0.0))};",
        f"{V} sign = {d('select', m='negative', yes=d.lit(-1.0), no='one')};",
        f"{V} t = {d('div', a='one', b=d('fma', a=d.lit(ERF_P), b='ax', c='one'))};",
        f"{V} poly = {coeffs[0]};",
    ]
    body += _horner("poly", coeffs[1:], "t",
                    lambda acc, var, c: d("fma", a=acc, b=var, c=c))
    body += [
        f"poly = {d('mul', a='poly', b='t')};",
        f"{V} decay = {exp_name}({d('neg', a=d('mul', a='ax', b='ax'))});",
        f"return {d('mul', a='sign', b=d('sub', a='one', b=d('mul', a='poly', b='decay')))};",
    ]
    return _function(V, name, f"{V} x", body)


def _scalar_exp(k: PrecisionConstants, precision: str, name: str) -> str:
    T = k.c_type
    lit = lambda v: c_literal(v, precision)
    body = [
        f"if (x > {lit(k.exp_overflow)}) return {k.infinity};",
        f"if (x < {lit(k.exp_underflow)}) return {lit(0.0)};",
        f"{T} kf = {k.rint}(x * {lit(k.inv_ln2)});",
        f"{T} r = x - kf * {lit(k.ln2_hi)};",
        f"r = r - kf * {lit(k.ln2_lo)};",
        f"{T} ep = {lit(k.exp_coeffs[0])};",
    ]
    body += _horner("ep", [lit(c) for c in k.exp_coeffs[1:]], "r",
                    lambda acc, var, c: f"{acc} * {var} + {c}")
    body += [
        f"{T} kh = {k.rint}(kf * {lit(0.5)});",
        f"{T} kr = kf - kh;",
        f"{k.uint_c_type} bits_h = ({k.uint_c_type})(({k.int_c_type})kh + {k.exponent_bias}) << {k.mantissa_bits};",
        f"{k.uint_c_type} bits_r = ({k.uint_c_type})(({k.int_c_type})kr + {k.exponent_bias}) << {k.mantissa_bits};",
        f"{T} scale_h, scale_r;",
        f"__builtin_memcpy(&scale_h, &bits_h, {k.byte_size});",
        f"__builtin_memcpy(&scale_r, &bits_r, {k.byte_size});",
        "return ep * scale_h * scale_r;",
    ]
    return _function(T, name, f"{T} x", body)


def _scalar_log(k: PrecisionConstants, precision: str, name: str) -> str:
    T, U = k.c_type, k.uint_c_type
    lit = lambda v: c_literal(v, precision)
    lg = [lit(c) for c in LOG_LG[:k.log_terms]]
    body = [
        f"{U} bits;",
        f"__builtin_memcpy(&bits, &x, {k.byte_size});",
        f"{T} e = ({T})(({k.int_c_type})((bits >> {k.mantissa_bits}) & {k.exponent_mask}) - {k.exponent_bias});",
        f"{U} m_bits = (bits & {k.mantissa_mask}) | {k.one_bits};",
        f"{T} m;",
        f"__builtin_memcpy(&m, &m_bits, {k.byte_size});",
        f"if (m > {lit(SQRT2)}) {{",
        f"    m = m * {lit(0.5)};",
        f"    e = e + {lit(1.0)};",
        "}",
        f"{T} f = m - {lit(1.0)};",
        f"{T} s = f / ({lit(2.0)} + f);",
        f"{T} z = s * s;",
        f"{T} R = {lg[-1]};",
    ]
    body += _horner("R", list(reversed(lg[:-1])), "z",
                    lambda acc, var, c: f"{acc} * {var} + {c}")
    body += [
        "R = R * z;",
        f"{T} hfsq = {lit(0.5)} * f * f;",
        f"return e * {lit(LN2)} + (f - hfsq + s * (hfsq + R));",
    ]
    return _function(T, name, f"{T} x", body)


def _scalar_sigmoid(k: PrecisionConstants, precision: str, name: str) -> str:
    one = c_literal(1.0, precision)
    exp_name = HelperRef("scalar", "exp", precision).c_name
    return _function(k.c_type, name, f"{k.c_type} x",
                     [f"return {one} / ({one} + {exp_name}(-x));"])


def _scalar_erf(k: PrecisionConstants, precision: str, name: str) -> str:
    T = k.c_type
    lit = lambda v: c_literal(v, precision)
    exp_name = HelperRef("scalar", "exp", precision).c_name
    coeffs = [lit(a) for a in reversed(ERF_A)]
    body = [
        f"{T} sign = {lit(1.0)};",
        f"{T} ax = x;",
        f"if (x < {lit(0.0)}) {{",
        f"    sign = {lit(-1.0)};",
        "    ax = -x;",
        "}",
        f"{T} t = {lit(1.0)} / ({lit(1.0)} + {lit(ERF_P)} * ax);",
        f"{T} poly = {coeffs[0]};",
    ]
    body += _horner("poly", coeffs[1:], "t", lambda acc, var, c: f"{acc} * {var} + {c}")
    body += [
        "poly = poly * t;",
        f"return sign * ({lit(1.0)} - poly * {exp_name}(-ax * ax));",
    ]
    return _function(T, name, f"{T} x", body)


_VECTOR_GENERATORS = {
    "exp": _vector_exp,
    "log": _vector_log,
    "sigmoid": _vector_sigmoid,
    "erf": _vector_erf,
}

_SCALAR_GENERATORS = {
    "exp": _scalar_exp,
    "log": _scalar_log,
    "sigmoid": _scalar_sigmoid,
    "erf": _scalar_erf,
}

BIT_HELPERS: Dict[str, str] = {
    "float_to_bits": _function("unsigned int", "float_to_bits", "float f", [
        "unsigned int bits;",
        "__builtin_memcpy(&bits, &f, 4);",
        "return bits;",
    ]),
    "bits_to_float": _function("float", "bits_to_float", "unsigned int bits", [
        "float f;",
        "__builtin_memcpy(&f, &bits, 4);",
        "return f;",
    ]),
}


def order_helpers(refs: Iterable[HelperRef]) -> List[HelperRef]:
    """
    Expand dependencies and order helpers for emission.

    Bit helpers come first; every math helper follows the helpers it calls.
    Order is otherwise first-request order.
    """
    ordered: List[HelperRef] = []

    def visit(ref: HelperRef) -> None:
        if ref in ordered:
            return
        for dep in MATH_DEPENDENCIES.get(ref.name, ()):
            visit(HelperRef(ref.kind, dep, ref.precision))
        ordered.append(ref)

    refs = list(refs)
    for ref in refs:
        if ref.kind == "bits":
            visit(ref)
    for ref in refs:
        if ref.kind != "bits":
            visit(ref)
    return ordered


def render_helper(ref: HelperRef, vec_type: Optional[str] = None) -> str:
    if ref.kind == "bits":
        return BIT_HELPERS[ref.name]
    if ref.kind == "scalar":
        generator = _SCALAR_GENERATORS[ref.name]
        return generator(PRECISIONS[ref.precision], ref.precision, ref.c_name)
    dialect = dialect_for(vec_type)
    if dialect is None or dialect.precision != ref.precision:
        raise SimdgenImplementationError(
            f"no math dialect for vector helper {ref.c_name} on {vec_type}")
    return _VECTOR_GENERATORS[ref.name](dialect, ref.c_name)


def render_helpers(refs: Iterable[HelperRef], vec_type: Optional[str] = None) -> List[str]:
    """Render the required helpers (plus dependencies) in emission order."""
    ordered = order_helpers(refs)
    logger.debug("emitting %d helper(s): %s", len(ordered), ", ".join(r.c_name for r in ordered))
    return [render_helper(ref, vec_type) for ref in ordered]


# ============================================================================
# numpy reference evaluators
# ============================================================================

def _as_array(x, precision: str) -> Tuple[np.ndarray, PrecisionConstants]:
    consts = PRECISIONS[precision]
    return np.asarray(x, dtype=consts.dtype), consts


def _pow2(kf: np.ndarray, k: PrecisionConstants) -> np.ndarray:
    bits = (kf.astype(k.int_dtype) + k.exponent_bias) << k.mantissa_bits
    return bits.view(k.dtype)


def reference_exp(x, precision: str = "f32") -> np.ndarray:
    """exp(x) evaluated with the generated helpers' algorithm."""
    x, k = _as_array(x, precision)
    dt = k.dtype
    xc = np.clip(x, dt(k.exp_underflow), dt(k.exp_overflow))
    kf = np.rint(xc * dt(k.inv_ln2))
    r = xc - kf * dt(k.ln2_hi)
    r = r - kf * dt(k.ln2_lo)
    ep = np.full_like(r, k.exp_coeffs[0])
    for coeff in k.exp_coeffs[1:]:
        ep = ep * r + dt(coeff)
    kh = np.rint(kf * dt(0.5))
    result = ep * _pow2(kh, k) * _pow2(kf - kh, k)
    result = np.where(x > dt(k.exp_overflow), dt(np.inf), result)
    return np.where(x < dt(k.exp_underflow), dt(0.0), result)


def reference_log(x, precision: str = "f32") -> np.ndarray:
    """log(x) for positive normal x, evaluated with the helpers' algorithm."""
    x, k = _as_array(x, precision)
    dt = k.dtype
    bits = x.view(k.int_dtype)
    e = (((bits >> k.mantissa_bits) & int(k.exponent_mask, 16)) - k.exponent_bias).astype(dt)
    m = ((bits & int(k.mantissa_mask, 16)) | int(k.one_bits, 16)).view(dt)
    big = m > dt(SQRT2)
    m = np.where(big, m * dt(0.5), m)
    e = np.where(big, e + dt(1.0), e)
    f = m - dt(1.0)
    s = f / (dt(2.0) + f)
    z = s * s
    lg = LOG_LG[:k.log_terms]
    R = np.full_like(z, lg[-1])
    for coeff in reversed(lg[:-1]):
        R = R * z + dt(coeff)
    R = R * z
    hfsq = dt(0.5) * f * f
    return e * dt(LN2) + (f - hfsq + s * (hfsq + R))


def reference_sigmoid(x, precision: str = "f32") -> np.ndarray:
    x, k = _as_array(x, precision)
    one = k.dtype(1.0)
    return one / (one + reference_exp(-x, precision))


def reference_erf(x, precision: str = "f32") -> np.ndarray:
    x, k = _as_array(x, precision)
    dt = k.dtype
    sign = np.where(x < 0, dt(-1.0), dt(1.0))
    ax = np.abs(x)
    t = dt(1.0) / (dt(1.0) + dt(ERF_P) * ax)
    poly = np.full_like(t, ERF_A[-1])
    for coeff in reversed(ERF_A[:-1]):
        poly = poly * t + dt(coeff)
    poly = poly * t
    return sign * (dt(1.0) - poly * reference_exp(-ax * ax, precision))


REFERENCE_FUNCTIONS = {
    "exp": reference_exp,
    "log": reference_log,
    "sigmoid": reference_sigmoid,
    "erf": reference_erf,
}
