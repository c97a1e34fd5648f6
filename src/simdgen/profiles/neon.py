"""
ARM NEON profiles.

Q tiers use 128-bit registers, D tiers 64-bit. All NEON FMAs take the
accumulator first and selects take the mask first.
"""

from typing import Dict, List

from .base import (
    ArgOrder, IntrinsicProfile, LoopTier, MathStrategy, Op, SelectOrder, Tier,
    merge_ops, ops_at, scalar_tier,
)

NEON_INCLUDE = "#include <arm_neon.h>"

Q, D = Tier.Q, Tier.D


def _float_q_ops(sfx: str) -> Dict[Op, str]:
    """128-bit float ops for lane suffix ``sfx`` (f32, f64, f16)."""
    return {
        Op.LOAD: f"vld1q_{sfx}",
        Op.STORE: f"vst1q_{sfx}",
        Op.SET: f"vdupq_n_{sfx}",
        Op.ADD: f"vaddq_{sfx}",
        Op.SUB: f"vsubq_{sfx}",
        Op.MUL: f"vmulq_{sfx}",
        Op.DIV: f"vdivq_{sfx}",
        Op.MUL_ADD: f"vfmaq_{sfx}",
        Op.NEG: f"vnegq_{sfx}",
        Op.ABS: f"vabsq_{sfx}",
        Op.SQRT: f"vsqrtq_{sfx}",
        Op.MIN: f"vminq_{sfx}",
        Op.MAX: f"vmaxq_{sfx}",
        Op.REDUCE_MIN: f"vminvq_{sfx}",
        Op.REDUCE_MAX: f"vmaxvq_{sfx}",
        Op.INTERLEAVE_LOWER: f"vzip1q_{sfx}",
        Op.INTERLEAVE_UPPER: f"vzip2q_{sfx}",
        Op.LESS_THAN: f"vcltq_{sfx}",
        Op.EQUAL: f"vceqq_{sfx}",
        Op.GREATER_THAN: f"vcgtq_{sfx}",
        Op.IF_THEN_ELSE: f"vbslq_{sfx}",
        Op.GET_LANE: f"vgetq_lane_{sfx}",
        Op.SLIDE_UP: f"vextq_{sfx}",
    }


def _float_bitwise_q_ops(sfx: str, usfx: str) -> Dict[Op, str]:
    cast_in = f"vreinterpretq_{usfx}_{sfx}"
    cast_out = f"vreinterpretq_{sfx}_{usfx}"
    return {
        op: f"{cast_out}({fn}_{usfx}({cast_in}({{0}}), {cast_in}({{1}})))"
        for op, fn in ((Op.AND, "vandq"), (Op.OR, "vorrq"), (Op.XOR, "veorq"))
    }


def _uint_q_ops(sfx: str) -> Dict[Op, str]:
    return {
        Op.LOAD: f"vld1q_{sfx}",
        Op.STORE: f"vst1q_{sfx}",
        Op.SET: f"vdupq_n_{sfx}",
        Op.ADD: f"vaddq_{sfx}",
        Op.SUB: f"vsubq_{sfx}",
        Op.AND: f"vandq_{sfx}",
        Op.OR: f"vorrq_{sfx}",
        Op.XOR: f"veorq_{sfx}",
        Op.REDUCE_SUM: f"vaddvq_{sfx}",
        Op.INTERLEAVE_LOWER: f"vzip1q_{sfx}",
        Op.INTERLEAVE_UPPER: f"vzip2q_{sfx}",
        Op.LESS_THAN: f"vcltq_{sfx}",
        Op.EQUAL: f"vceqq_{sfx}",
        Op.GREATER_THAN: f"vcgtq_{sfx}",
        Op.IF_THEN_ELSE: f"vbslq_{sfx}",
        Op.GET_LANE: f"vgetq_lane_{sfx}",
        Op.LOAD4: f"vld1q_{sfx}_x4",
        Op.SLIDE_UP: f"vextq_{sfx}",
        Op.SHIFT_RIGHT: f"vshrq_n_{sfx}",
    }


# ---------------------------------------------------------------------------
# Inline helpers (emitted verbatim into every translation unit of the profile)
# ---------------------------------------------------------------------------

NEON_POPCNT_U64 = """static inline uint64x2_t neon_popcnt_u64(uint64x2_t v) {
    uint8x16_t c = vcntq_u8(vreinterpretq_u8_u64(v));
    return vpaddlq_u32(vpaddlq_u16(vpaddlq_u8(c)));
}"""

NEON_POPCNT_U64_TO_U32 = """static inline uint32x4_t neon_popcnt_u64_to_u32(uint64x2_t v) {
    uint8x16_t c = vcntq_u8(vreinterpretq_u8_u64(v));
    return vpaddlq_u16(vpaddlq_u8(c));
}"""

NEON_BITS_FROM_MASK_U8 = """static inline unsigned int neon_bits_from_mask_u8(uint8x16_t mask) {
    volatile unsigned char tmp[16];
    vst1q_u8((unsigned char *)tmp, mask);
    unsigned int bits = 0;
#pragma clang loop vectorize(disable) interleave(disable)
    for (int i = 0; i < 16; i++) {
        bits |= (unsigned int)(tmp[i] >> 7) << i;
    }
    return bits;
}"""


def neon_profiles() -> List[IntrinsicProfile]:
    f32_q = merge_ops(
        ops_at(Q, _float_q_ops("f32")),
        ops_at(Q, _float_bitwise_q_ops("f32", "u32")),
        ops_at(Q, {Op.REDUCE_SUM: "vaddvq_f32", Op.LOAD4: "vld1q_f32_x4"}),
    )
    f64_q = merge_ops(
        ops_at(Q, _float_q_ops("f64")),
        ops_at(Q, _float_bitwise_q_ops("f64", "u64")),
        ops_at(Q, {Op.REDUCE_SUM: "vaddvq_f64", Op.LOAD4: "vld1q_f64_x4"}),
    )

    f16_d_ops = {
        Op.LOAD: "vld1_f16",
        Op.STORE: "vst1_f16",
        Op.SET: "vdup_n_f16",
        Op.ADD: "vadd_f16",
        Op.SUB: "vsub_f16",
        Op.MUL: "vmul_f16",
        Op.DIV: "vdiv_f16",
        Op.MUL_ADD: "vfma_f16",
        Op.NEG: "vneg_f16",
        Op.ABS: "vabs_f16",
        Op.SQRT: "vsqrt_f16",
        Op.MIN: "vmin_f16",
        Op.MAX: "vmax_f16",
        Op.REDUCE_SUM: "vaddvq_f32(vcvt_f32_f16({0}))",
        Op.REDUCE_MIN: "vminv_f16",
        Op.REDUCE_MAX: "vmaxv_f16",
        Op.INTERLEAVE_LOWER: "vzip1_f16",
        Op.INTERLEAVE_UPPER: "vzip2_f16",
        Op.LESS_THAN: "vclt_f16",
        Op.EQUAL: "vceq_f16",
        Op.GREATER_THAN: "vcgt_f16",
        Op.IF_THEN_ELSE: "vbsl_f16",
        Op.GET_LANE: "vget_lane_f16",
        Op.LOAD4: "vld1_f16_x4",
        Op.SLIDE_UP: "vext_f16",
        Op.PROMOTE: "vcvt_f32_f16",
        Op.DEMOTE: "vcvt_f16_f32",
    }
    f16_q_ops = dict(_float_q_ops("f16"))
    f16_q_ops.update({
        Op.REDUCE_SUM: "vaddvq_f32(vaddq_f32(vcvt_f32_f16(vget_low_f16({0})), vcvt_high_f32_f16({0})))",
        Op.LOAD4: "vld1q_f16_x4",
        Op.PROMOTE_LOWER: "vcvt_f32_f16(vget_low_f16({0}))",
        Op.PROMOTE_UPPER: "vcvt_high_f32_f16({0})",
        Op.DEMOTE: "vcvt_f16_f32",
        Op.COMBINE: "vcombine_f16",
    })

    # bf16 has no arithmetic on these targets: D vectors are promoted to
    # float32x4_t on load and truncated back on store.
    f32_compute = {
        op: spelling for op, spelling in _float_q_ops("f32").items()
        if op not in (Op.LOAD, Op.STORE)
    }
    bf16_d_ops = dict(f32_compute)
    bf16_d_ops.update({
        Op.LOAD: "vld1_u16",
        Op.STORE: "vst1_u16",
        Op.REDUCE_SUM: "vaddvq_f32",
        Op.SPILL_STORE: "vst1q_f32",
        Op.PROMOTE: "vreinterpretq_f32_u32(vshll_n_u16({0}, 16))",
        Op.DEMOTE: "vshrn_n_u32(vreinterpretq_u32_f32({0}), 16)",
    })
    bf16_q_ops = {
        Op.LOAD: "vld1q_u16",
        Op.STORE: "vst1q_u16",
        Op.PROMOTE_LOWER: "vreinterpretq_f32_u32(vshll_n_u16(vget_low_u16({0}), 16))",
        Op.PROMOTE_UPPER: "vreinterpretq_f32_u32(vshll_high_n_u16({0}, 16))",
        Op.COMBINE: "vcombine_u16",
        Op.DEMOTE: "vshrn_n_u32(vreinterpretq_u32_f32({0}), 16)",
    }

    u64_q = dict(_uint_q_ops("u64"))
    u64_q.update({
        Op.POP_COUNT: "neon_popcnt_u64",
        Op.POP_COUNT_PARTIAL: "neon_popcnt_u64_to_u32",
        Op.ACC_ADD: "vaddq_u32",
        Op.ACC_REDUCE: "vaddvq_u32",
        Op.ACC_ZERO: "vdupq_n_u32",
    })

    u32_q = dict(_uint_q_ops("u32"))
    u32_q.update({
        Op.MUL: "vmulq_u32",
        Op.MIN: "vminq_u32",
        Op.MAX: "vmaxq_u32",
        Op.REDUCE_MIN: "vminvq_u32",
        Op.REDUCE_MAX: "vmaxvq_u32",
        Op.POP_COUNT: "vpaddlq_u16(vpaddlq_u8(vcntq_u8(vreinterpretq_u8_u32({0}))))",
    })

    u8_q = dict(_uint_q_ops("u8"))
    u8_q.update({
        Op.MIN: "vminq_u8",
        Op.MAX: "vmaxq_u8",
        Op.REDUCE_MIN: "vminvq_u8",
        Op.REDUCE_MAX: "vmaxvq_u8",
        Op.POP_COUNT: "vcntq_u8",
        Op.BITS_FROM_MASK: "neon_bits_from_mask_u8",
        Op.TABLE_LOOKUP_BYTES: "vqtbl1q_u8",
    })

    return [
        IntrinsicProfile(
            architecture="NEON",
            element_type="float32",
            include=NEON_INCLUDE,
            c_type="float",
            tiers=(LoopTier(Q, 4, 4), LoopTier(Q, 4, 1), scalar_tier()),
            vec_types={Q: "float32x4_t"},
            ops=f32_q,
            mask_types={Q: "uint32x4_t"},
            x4_types={Q: "float32x4x4_t"},
            fma_order=ArgOrder.ACC_FIRST,
            select_order=SelectOrder.MASK_FIRST,
            compiler_flags=("-march=armv8-a+simd+fp",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="float64",
            include=NEON_INCLUDE,
            c_type="double",
            tiers=(LoopTier(Q, 2, 4), LoopTier(Q, 2, 1), scalar_tier()),
            vec_types={Q: "float64x2_t"},
            ops=f64_q,
            mask_types={Q: "uint64x2_t"},
            x4_types={Q: "float64x2x4_t"},
            fma_order=ArgOrder.ACC_FIRST,
            select_order=SelectOrder.MASK_FIRST,
            compiler_flags=("-march=armv8-a+simd+fp",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="hwy.Float16",
            include=NEON_INCLUDE,
            c_type="unsigned short",
            tiers=(LoopTier(Q, 8, 4), LoopTier(Q, 8, 1), LoopTier(D, 4, 1), scalar_tier()),
            vec_types={Q: "float16x8_t", D: "float16x4_t"},
            ops=merge_ops(ops_at(Q, f16_q_ops), ops_at(D, f16_d_ops)),
            wide_vec_types={Q: "float32x4_t", D: "float32x4_t"},
            mask_types={Q: "uint16x8_t", D: "uint16x4_t"},
            x4_types={Q: "float16x8x4_t", D: "float16x4x4_t"},
            math_strategy=MathStrategy.PROMOTED,
            native_arithmetic=True,
            scalar_arith_type="float16_t",
            cast_expr="(float16_t *)",
            fma_order=ArgOrder.ACC_FIRST,
            select_order=SelectOrder.MASK_FIRST,
            compiler_flags=("-march=armv8.2-a+fp16+simd",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="hwy.BFloat16",
            include=NEON_INCLUDE,
            c_type="unsigned short",
            tiers=(LoopTier(Q, 8, 4), LoopTier(Q, 8, 1), LoopTier(D, 4, 1), scalar_tier()),
            vec_types={Q: "uint16x8_t", D: "float32x4_t"},
            storage_vec_types={Q: "uint16x8_t", D: "uint16x4_t"},
            ops=merge_ops(ops_at(Q, bf16_q_ops), ops_at(D, bf16_d_ops)),
            mask_types={D: "uint32x4_t"},
            math_strategy=MathStrategy.PROMOTED,
            native_arithmetic=False,
            fma_order=ArgOrder.ACC_FIRST,
            select_order=SelectOrder.MASK_FIRST,
            compiler_flags=("-march=armv8.6-a+bf16+simd",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="uint64",
            include=NEON_INCLUDE,
            c_type="unsigned long",
            tiers=(LoopTier(Q, 2, 1), scalar_tier()),
            vec_types={Q: "uint64x2_t"},
            ops=ops_at(Q, u64_q),
            mask_types={Q: "uint64x2_t"},
            x4_types={Q: "uint64x2x4_t"},
            acc_vec_types={Q: "uint32x4_t"},
            inline_helpers=(NEON_POPCNT_U64, NEON_POPCNT_U64_TO_U32),
            cast_expr="(uint64_t *)",
            compiler_flags=("-march=armv8-a+simd",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="uint32",
            include=NEON_INCLUDE,
            c_type="unsigned int",
            tiers=(LoopTier(Q, 4, 1), scalar_tier()),
            vec_types={Q: "uint32x4_t"},
            ops=ops_at(Q, u32_q),
            mask_types={Q: "uint32x4_t"},
            x4_types={Q: "uint32x4x4_t"},
            compiler_flags=("-march=armv8-a+simd",),
        ),
        IntrinsicProfile(
            architecture="NEON",
            element_type="uint8",
            include=NEON_INCLUDE,
            c_type="unsigned char",
            tiers=(LoopTier(Q, 16, 1), scalar_tier()),
            vec_types={Q: "uint8x16_t"},
            ops=ops_at(Q, u8_q),
            mask_types={Q: "uint8x16_t"},
            x4_types={Q: "uint8x16x4_t"},
            inline_helpers=(NEON_BITS_FROM_MASK_U8,),
            compiler_flags=("-march=armv8-a+simd",),
        ),
    ]
