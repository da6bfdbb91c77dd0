"""
Tests for Z3-backed constant folding of branch conditions.
"""

import threading

import pytest

from safedrop.mir.analyzers.constants import ConstantFolder


@pytest.fixture
def folder():
    return ConstantFolder()


class TestLiterals:
    """Folding with known operands"""

    def test_arithmetic(self, folder):
        five, three = folder.term(5, "a"), folder.term(3, "b")
        assert folder.fold_binary("Add", five, three) == 8
        assert folder.fold_binary("Sub", five, three) == 2
        assert folder.fold_binary("Mul", five, three) == 15

    def test_division_truncates_toward_zero(self, folder):
        assert folder.fold_binary("Div", folder.term(-7, "a"), folder.term(2, "b")) == -3
        assert folder.fold_binary("Rem", folder.term(-7, "a"), folder.term(2, "b")) == -1
        assert folder.fold_binary("Div", folder.term(7, "a"), folder.term(2, "b")) == 3

    def test_comparisons(self, folder):
        assert folder.fold_binary("Lt", folder.term(1, "a"), folder.term(2, "b")) is True
        assert folder.fold_binary("Ge", folder.term(1, "a"), folder.term(2, "b")) is False
        assert folder.fold_binary("Eq", folder.term(4, "a"), folder.term(4, "b")) is True
        assert folder.fold_binary("Ne", folder.term(4, "a"), folder.term(4, "b")) is False

    def test_bitwise(self, folder):
        assert folder.fold_binary("BitAnd", folder.term(12, "a"), folder.term(10, "b")) == 8
        assert folder.fold_binary("BitOr", folder.term(12, "a"), folder.term(10, "b")) == 14
        assert folder.fold_binary("BitXor", folder.term(12, "a"), folder.term(10, "b")) == 6
        assert folder.fold_binary("Shl", folder.term(1, "a"), folder.term(4, "b")) == 16

    def test_bool_operations(self, folder):
        t, f = folder.term(True, "a"), folder.term(False, "b")
        assert folder.fold_binary("BitAnd", t, f) is False
        assert folder.fold_binary("BitOr", t, f) is True
        assert folder.fold_unary("Not", t) is False

    def test_mixed_bool_and_int_equality(self, folder):
        assert folder.fold_binary("Eq", folder.term(True, "a"), folder.term(1, "b")) is True

    def test_negation(self, folder):
        assert folder.fold_unary("Neg", folder.term(5, "a")) == -5


class TestSymbols:
    """Folding with unknown operands"""

    def test_unknown_stays_unknown(self, folder):
        x = folder.term(None, "n1")
        assert folder.fold_binary("Lt", x, folder.term(3, "b")) is None

    def test_identities_fold(self, folder):
        x = folder.term(None, "n1")
        assert folder.fold_binary("Eq", x, x) is True
        assert folder.fold_binary("Sub", x, x) == 0

    def test_bool_symbol(self, folder):
        b = folder.term(None, "n2", is_bool=True)
        assert folder.fold_binary("BitAnd", b, folder.term(False, "c")) is False
        assert folder.fold_unary("Not", b) is None

    def test_unmodelled_operator(self, folder):
        assert folder.fold_binary("Offset", folder.term(1, "a"), folder.term(2, "b")) is None
        assert folder.fold_unary("PtrMetadata", folder.term(1, "a")) is None


class TestThreads:
    """Folders on different threads use private contexts"""

    def test_parallel_folders(self):
        results = []
        errors = []

        def work(offset):
            try:
                folder = ConstantFolder()
                for i in range(50):
                    value = folder.fold_binary("Add", folder.term(i, "a"),
                                               folder.term(offset, "b"))
                    results.append(value - i == offset)
            except Exception as e:  # surfaced through the assertion below
                errors.append(e)

        threads = [threading.Thread(target=work, args=(k,)) for k in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors
        assert all(results)
        assert len(results) == 200
