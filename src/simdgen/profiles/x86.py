"""
x86 AVX2 / AVX-512 profiles.

x86 FMAs take the accumulator last; blends take the mask last, and the
AVX-512 mask blends are spelled as templates so they follow the same
(no, yes, mask) convention.
"""

from typing import Dict, List

from .base import (
    ArgOrder, IntrinsicProfile, LoopTier, MathStrategy, Op, SelectOrder, Tier,
    merge_ops, ops_at, scalar_tier,
)


X86_INCLUDE = "#include <immintrin.h>"

XMM, YMM, ZMM = Tier.XMM, Tier.YMM, Tier.ZMM

X86_HSUM_PS128 = """static inline float x86_hsum_ps128(__m128 v) {
    __m128 shuf = _mm_movehdup_ps(v);
    __m128 sums = _mm_add_ps(v, shuf);
    shuf = _mm_movehl_ps(shuf, sums);
    sums = _mm_add_ss(sums, shuf);
    return _mm_cvtss_f32(sums);
}"""

X86_HSUM_PS256 = """static inline float x86_hsum_ps256(__m256 v) {
    __m128 lo = _mm256_castps256_ps128(v);
    __m128 hi = _mm256_extractf128_ps(v, 1);
    return x86_hsum_ps128(_mm_add_ps(lo, hi));
}"""


def _avx_ps_ops(prefix: str, width: str) -> Dict[Op, str]:
    """SSE/AVX float ops; ``prefix`` is ``_mm`` or ``_mm256``."""
    return {
        Op.SET: f"{prefix}_set1_ps",
        Op.ADD: f"{prefix}_add_ps",
        Op.SUB: f"{prefix}_sub_ps",
        Op.MUL: f"{prefix}_mul_ps",
        Op.DIV: f"{prefix}_div_ps",
        Op.MUL_ADD: f"{prefix}_fmadd_ps",
        Op.NEG: f"{prefix}_sub_ps({prefix}_setzero_ps(), {{0}})",
        Op.ABS: f"{prefix}_andnot_ps({prefix}_set1_ps(-0.0f), {{0}})",
        Op.SQRT: f"{prefix}_sqrt_ps",
        Op.MIN: f"{prefix}_min_ps",
        Op.MAX: f"{prefix}_max_ps",
        Op.AND: f"{prefix}_and_ps",
        Op.OR: f"{prefix}_or_ps",
        Op.XOR: f"{prefix}_xor_ps",
        Op.LESS_THAN: f"{prefix}_cmp_ps({{0}}, {{1}}, _CMP_LT_OQ)",
        Op.EQUAL: f"{prefix}_cmp_ps({{0}}, {{1}}, _CMP_EQ_OQ)",
        Op.GREATER_THAN: f"{prefix}_cmp_ps({{0}}, {{1}}, _CMP_GT_OQ)",
        Op.IF_THEN_ELSE: f"{prefix}_blendv_ps",
        Op.REDUCE_SUM: f"x86_hsum_ps{width}",
        Op.SPILL_STORE: f"{prefix}_storeu_ps",
    }


def _avx512_ops(sfx: str, prefix: str = "_mm512") -> Dict[Op, str]:
    """AVX-512 style ops for lane suffix ``sfx`` (ps, pd, ph)."""
    return {
        Op.SET: f"{prefix}_set1_{sfx}",
        Op.ADD: f"{prefix}_add_{sfx}",
        Op.SUB: f"{prefix}_sub_{sfx}",
        Op.MUL: f"{prefix}_mul_{sfx}",
        Op.DIV: f"{prefix}_div_{sfx}",
        Op.MUL_ADD: f"{prefix}_fmadd_{sfx}",
        Op.NEG: f"{prefix}_sub_{sfx}({prefix}_setzero_{sfx}(), {{0}})",
        Op.ABS: f"{prefix}_abs_{sfx}",
        Op.SQRT: f"{prefix}_sqrt_{sfx}",
        Op.MIN: f"{prefix}_min_{sfx}",
        Op.MAX: f"{prefix}_max_{sfx}",
        Op.REDUCE_SUM: f"{prefix}_reduce_add_{sfx}",
        Op.REDUCE_MIN: f"{prefix}_reduce_min_{sfx}",
        Op.REDUCE_MAX: f"{prefix}_reduce_max_{sfx}",
        Op.LESS_THAN: f"{prefix}_cmp_{sfx}_mask({{0}}, {{1}}, _CMP_LT_OQ)",
        Op.EQUAL: f"{prefix}_cmp_{sfx}_mask({{0}}, {{1}}, _CMP_EQ_OQ)",
        Op.GREATER_THAN: f"{prefix}_cmp_{sfx}_mask({{0}}, {{1}}, _CMP_GT_OQ)",
        Op.IF_THEN_ELSE: f"{prefix}_mask_blend_{sfx}({{2}}, {{0}}, {{1}})",
        Op.SPILL_STORE: f"{prefix}_storeu_{sfx}",
    }


def x86_profiles() -> List[IntrinsicProfile]:
    # AVX2 + F16C: halves are widened to f32 on load, narrowed on store
    f16_xmm = _avx_ps_ops("_mm", "128")
    f16_xmm.update({
        Op.LOAD: "_mm_loadl_epi64",
        Op.STORE: "_mm_storel_epi64",
        Op.PROMOTE: "_mm_cvtph_ps",
        Op.DEMOTE: "_mm_cvtps_ph({0}, 0)",
        Op.INTERLEAVE_LOWER: "_mm_unpacklo_ps",
        Op.INTERLEAVE_UPPER: "_mm_unpackhi_ps",
        Op.GET_LANE: "_mm_cvtss_f32(_mm_permutevar_ps({0}, _mm_set1_epi32({1})))",
    })
    f16_ymm = _avx_ps_ops("_mm256", "256")
    f16_ymm.update({
        Op.LOAD: "_mm_loadu_si128",
        Op.STORE: "_mm_storeu_si128",
        Op.PROMOTE: "_mm256_cvtph_ps",
        Op.DEMOTE: "_mm256_cvtps_ph({0}, 0)",
        Op.GET_LANE: "_mm256_cvtss_f32(_mm256_permutevar8x32_ps({0}, _mm256_set1_epi32({1})))",
    })

    f32_ymm = _avx_ps_ops("_mm256", "256")
    f32_ymm.update({
        Op.LOAD: "_mm256_loadu_ps",
        Op.STORE: "_mm256_storeu_ps",
        Op.GET_LANE: "_mm256_cvtss_f32(_mm256_permutevar8x32_ps({0}, _mm256_set1_epi32({1})))",
    })

    # AVX512-FP16: native half arithmetic, math widened to __m512
    h_ymm = _avx512_ops("ph", "_mm256")
    h_ymm.update({
        Op.LOAD: "_mm256_loadu_ph",
        Op.STORE: "_mm256_storeu_ph",
        Op.GET_LANE: "_mm256_cvtsh_h(_mm256_permutexvar_ph(_mm256_set1_epi16({1}), {0}))",
        Op.PROMOTE: "_mm512_cvtph_ps(_mm256_castph_si256({0}))",
        Op.DEMOTE: "_mm256_castsi256_ph(_mm512_cvtps_ph({0}, 0))",
    })
    h_zmm = _avx512_ops("ph")
    h_zmm.update({
        Op.LOAD: "_mm512_loadu_ph",
        Op.STORE: "_mm512_storeu_ph",
        Op.GET_LANE: "_mm512_cvtsh_h(_mm512_permutexvar_ph(_mm512_set1_epi16({1}), {0}))",
        Op.PROMOTE_LOWER: "_mm512_cvtph_ps(_mm512_castsi512_si256(_mm512_castph_si512({0})))",
        Op.PROMOTE_UPPER: "_mm512_cvtph_ps(_mm512_extracti64x4_epi64(_mm512_castph_si512({0}), 1))",
        Op.DEMOTE: "_mm512_cvtps_ph({0}, 0)",
        Op.COMBINE: "_mm512_castsi512_ph(_mm512_inserti64x4(_mm512_castsi256_si512({0}), {1}, 1))",
    })

    # AVX512-BF16: compute in f32, store with round-to-nearest-even narrowing
    bf16_zmm16 = _avx512_ops("ps")
    bf16_zmm16.update({
        Op.LOAD: "_mm256_loadu_si256",
        Op.STORE: "_mm256_storeu_si256",
        Op.PROMOTE: "_mm512_castsi512_ps(_mm512_slli_epi32(_mm512_cvtepu16_epi32({0}), 16))",
        Op.DEMOTE: "(__m256i)_mm512_cvtneps_pbh({0})",
        Op.GET_LANE: "_mm512_cvtss_f32(_mm512_permutexvar_ps(_mm512_set1_epi32({1}), {0}))",
    })

    ps_zmm = _avx512_ops("ps")
    ps_zmm.update({
        Op.LOAD: "_mm512_loadu_ps",
        Op.STORE: "_mm512_storeu_ps",
        Op.GET_LANE: "_mm512_cvtss_f32(_mm512_permutexvar_ps(_mm512_set1_epi32({1}), {0}))",
    })
    pd_zmm = _avx512_ops("pd")
    pd_zmm.update({
        Op.LOAD: "_mm512_loadu_pd",
        Op.STORE: "_mm512_storeu_pd",
        Op.GET_LANE: "_mm512_cvtsd_f64(_mm512_permutexvar_pd(_mm512_set1_epi64({1}), {0}))",
    })

    return [
        IntrinsicProfile(
            architecture="AVX2",
            element_type="hwy.Float16",
            include=X86_INCLUDE,
            c_type="unsigned short",
            tiers=(LoopTier(YMM, 8, 4), LoopTier(YMM, 8, 1), LoopTier(XMM, 4, 1), scalar_tier()),
            vec_types={YMM: "__m256", XMM: "__m128"},
            storage_vec_types={YMM: "__m128i", XMM: "__m128i"},
            ops=merge_ops(ops_at(YMM, f16_ymm), ops_at(XMM, f16_xmm)),
            mask_types={YMM: "__m256", XMM: "__m128"},
            inline_helpers=(X86_HSUM_PS128, X86_HSUM_PS256),
            math_strategy=MathStrategy.PROMOTED,
            native_arithmetic=False,
            cast_expr="(__m128i *)",
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mf16c", "-mavx2", "-mfma"),
        ),
        IntrinsicProfile(
            architecture="AVX2",
            element_type="float32",
            include=X86_INCLUDE,
            c_type="float",
            tiers=(LoopTier(YMM, 8, 4), LoopTier(YMM, 8, 1), scalar_tier()),
            vec_types={YMM: "__m256"},
            ops=ops_at(YMM, f32_ymm),
            mask_types={YMM: "__m256"},
            inline_helpers=(X86_HSUM_PS128, X86_HSUM_PS256),
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mavx2", "-mfma"),
        ),
        IntrinsicProfile(
            architecture="AVX512",
            element_type="hwy.Float16",
            include=X86_INCLUDE,
            c_type="unsigned short",
            tiers=(LoopTier(ZMM, 32, 4), LoopTier(ZMM, 32, 1), LoopTier(YMM, 16, 1), scalar_tier()),
            vec_types={ZMM: "__m512h", YMM: "__m256h"},
            ops=merge_ops(ops_at(ZMM, h_zmm), ops_at(YMM, h_ymm)),
            wide_vec_types={ZMM: "__m512", YMM: "__m512"},
            mask_types={ZMM: "__mmask32", YMM: "__mmask16"},
            math_strategy=MathStrategy.PROMOTED,
            native_arithmetic=True,
            scalar_arith_type="_Float16",
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mavx512fp16", "-mavx512f", "-mavx512vl"),
        ),
        IntrinsicProfile(
            architecture="AVX512",
            element_type="hwy.BFloat16",
            include=X86_INCLUDE,
            c_type="unsigned short",
            tiers=(LoopTier(ZMM, 32, 4), LoopTier(ZMM, 16, 1), scalar_tier()),
            vec_types={ZMM: "__m512"},
            storage_vec_types={ZMM: "__m256i"},
            ops=ops_at(ZMM, bf16_zmm16),
            mask_types={ZMM: "__mmask16"},
            math_strategy=MathStrategy.PROMOTED,
            native_arithmetic=False,
            cast_expr="(__m256i *)",
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mavx512bf16", "-mavx512f", "-mavx512vl"),
        ),
        IntrinsicProfile(
            architecture="AVX512",
            element_type="float32",
            include=X86_INCLUDE,
            c_type="float",
            tiers=(LoopTier(ZMM, 16, 4), LoopTier(ZMM, 16, 1), scalar_tier()),
            vec_types={ZMM: "__m512"},
            ops=ops_at(ZMM, ps_zmm),
            mask_types={ZMM: "__mmask16"},
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mavx512f",),
        ),
        IntrinsicProfile(
            architecture="AVX512",
            element_type="float64",
            include=X86_INCLUDE,
            c_type="double",
            tiers=(LoopTier(ZMM, 8, 4), LoopTier(ZMM, 8, 1), scalar_tier()),
            vec_types={ZMM: "__m512d"},
            ops=ops_at(ZMM, pd_zmm),
            mask_types={ZMM: "__mmask8"},
            fma_order=ArgOrder.ACC_LAST,
            select_order=SelectOrder.MASK_LAST,
            compiler_flags=("-mavx512f", "-mavx512dq"),
        ),
    ]
