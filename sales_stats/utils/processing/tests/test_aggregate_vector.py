import itertools
import random

import pytest

from ..aggregate_vector import AggregateVector, PartialAggregateMessage


class TestAggregateVector:

    def test_zero_initialised(self):
        vector = AggregateVector(3)
        assert vector.entire_file == [0.0, 0.0, 0.0]
        assert vector.given_year == [0.0, 0.0, 0.0]
        assert vector.for_customer == [0.0, 0.0, 0.0]

    def test_add_gates_period_and_class_columns(self):
        vector = AggregateVector(5)
        vector.add(2, 50.0, in_period=True, for_class=False)
        vector.add(2, 10.0, in_period=False, for_class=True)
        vector.add(0, 1.0, in_period=False, for_class=False)

        assert vector.entire_file == [1.0, 0.0, 60.0, 0.0, 0.0]
        assert vector.given_year == [0.0, 0.0, 50.0, 0.0, 0.0]
        assert vector.for_customer == [0.0, 0.0, 10.0, 0.0, 0.0]

    @pytest.mark.parametrize("category_id", [-1, 5])
    def test_add_outside_range(self, category_id):
        with pytest.raises(IndexError):
            AggregateVector(5).add(category_id, 1.0, True, True)

    def test_merge_is_element_wise_sum(self):
        a = AggregateVector(2, [1, 2], [3, 4], [5, 6])
        b = AggregateVector(2, [10, 20], [30, 40], [50, 60])

        assert a.merge(b) == AggregateVector(2, [11, 22], [33, 44], [55, 66])

    def test_merge_size_mismatch(self):
        with pytest.raises(ValueError):
            AggregateVector(2).merge(AggregateVector(3))

    def test_merge_all_is_order_independent(self):
        rng = random.Random(7)
        # montos enteros: la suma en float es exacta en cualquier orden
        partials = [
            AggregateVector(4, *[[rng.randint(0, 100) for _ in range(4)] for _ in range(3)])
            for _ in range(4)
        ]
        expected = AggregateVector(
            4,
            [sum(p.entire_file[i] for p in partials) for i in range(4)],
            [sum(p.given_year[i] for p in partials) for i in range(4)],
            [sum(p.for_customer[i] for p in partials) for i in range(4)],
        )

        for ordering in itertools.permutations(partials):
            assert AggregateVector.merge_all(ordering, 4) == expected

    def test_merge_all_of_nothing_is_zero(self):
        assert AggregateVector.merge_all([], 2) == AggregateVector(2)

    def test_rows(self):
        vector = AggregateVector(2, [1, 2], [3, 4], [5, 6])
        assert list(vector.rows()) == [(0, 1.0, 3.0, 5.0), (1, 2.0, 4.0, 6.0)]

    def test_column_length_is_checked(self):
        with pytest.raises(ValueError):
            AggregateVector(2, [1.0])


def test_partial_message_carries_worker_and_vector():
    vector = AggregateVector(3, [1.5, 0, 2], [0, 0, 2], [1.5, 0, 0])
    message = PartialAggregateMessage.decode(PartialAggregateMessage(4, vector).encode())

    assert message.worker_id == 4
    assert message.vector == vector


def test_partial_message_rejects_other_prefix():
    with pytest.raises(ValueError):
        PartialAggregateMessage.decode(b"AGG_STATS;1;abc")
