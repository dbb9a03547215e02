"""
Tests for RoPE (Rotary Position Embeddings) implementation.

Llama checkpoints use the "rotate half" channel pairing, so these tests pin
down that layout in addition to the generic properties of a rotation.
"""

import pytest
import torch

from smollm_lite.models.llama.rope import apply_rotary_emb, precompute_rope_tables, rotate_half
from tests.utils.comparison import assert_tensors_close


@pytest.mark.unit
def test_precompute_rope_tables_shape() -> None:
    cos, sin = precompute_rope_tables(dim=64, end=128)

    assert cos.shape == (128, 64)
    assert sin.shape == (128, 64)


@pytest.mark.unit
def test_precompute_rope_tables_frequency_formula() -> None:
    """Test that angles follow pos * theta^(-2i/dim), repeated for both halves."""
    dim = 8
    theta = 10000.0
    cos, sin = precompute_rope_tables(dim, end=4, theta=theta)

    for i in range(dim // 2):
        freq = theta ** (-2 * i / dim)
        expected = torch.tensor(3 * freq)
        assert cos[3, i].item() == pytest.approx(torch.cos(expected).item(), abs=1e-6)
        assert sin[3, i + dim // 2].item() == pytest.approx(torch.sin(expected).item(), abs=1e-6)


@pytest.mark.unit
def test_rotate_half() -> None:
    x = torch.tensor([1.0, 2.0, 3.0, 4.0])

    assert rotate_half(x).tolist() == [-3.0, -4.0, 1.0, 2.0]


@pytest.mark.unit
def test_position_zero_is_identity() -> None:
    cos, sin = precompute_rope_tables(dim=8, end=4)
    q = torch.randn(1, 1, 2, 8)
    k = torch.randn(1, 1, 1, 8)

    q_rot, k_rot = apply_rotary_emb(q, k, cos, sin, position_offset=0)

    assert_tensors_close(q_rot, q)
    assert_tensors_close(k_rot, k)


@pytest.mark.unit
def test_rotation_preserves_norm() -> None:
    cos, sin = precompute_rope_tables(dim=16, end=32)
    q = torch.randn(2, 5, 4, 16)
    k = torch.randn(2, 5, 2, 16)

    q_rot, k_rot = apply_rotary_emb(q, k, cos, sin, position_offset=7)

    assert_tensors_close(q_rot.norm(dim=-1), q.norm(dim=-1), atol=1e-5)
    assert_tensors_close(k_rot.norm(dim=-1), k.norm(dim=-1), atol=1e-5)


@pytest.mark.unit
def test_scores_depend_only_on_relative_position() -> None:
    """Test that q_m . k_n is unchanged when both positions shift together."""
    cos, sin = precompute_rope_tables(dim=16, end=64)
    q = torch.randn(1, 1, 1, 16)
    k = torch.randn(1, 1, 1, 16)

    def score(q_pos: int, k_pos: int) -> float:
        q_rot, _ = apply_rotary_emb(q, q, cos, sin, position_offset=q_pos)
        _, k_rot = apply_rotary_emb(k, k, cos, sin, position_offset=k_pos)
        return (q_rot * k_rot).sum().item()

    assert score(5, 2) == pytest.approx(score(20, 17), abs=1e-4)
    assert score(5, 2) != pytest.approx(score(5, 4), abs=1e-4)


@pytest.mark.unit
def test_offset_block_matches_full_sequence() -> None:
    cos, sin = precompute_rope_tables(dim=8, end=16)
    q = torch.randn(1, 6, 2, 8)
    k = torch.randn(1, 6, 2, 8)

    q_full, k_full = apply_rotary_emb(q, k, cos, sin, position_offset=0)
    q_tail, k_tail = apply_rotary_emb(q[:, 4:], k[:, 4:], cos, sin, position_offset=4)

    assert_tensors_close(q_tail, q_full[:, 4:])
    assert_tensors_close(k_tail, k_full[:, 4:])


@pytest.mark.unit
def test_positions_past_table_raise() -> None:
    cos, sin = precompute_rope_tables(dim=8, end=4)
    q = torch.randn(1, 2, 1, 8)

    with pytest.raises(ValueError, match="precomputed rotary positions"):
        apply_rotary_emb(q, q, cos, sin, position_offset=3)
