"""
Constant folding for branch conditions using Z3.

Known values become Z3 literals, unknown values become symbols named after
their node, and the expression is reduced with z3.simplify. A result that
simplifies to a literal is a constant on the current path; anything else is
unknown. Symbols let identities fold even without known inputs, e.g.
`x == x` or `x - x`.

Each folder owns a private z3.Context so folders on different threads do
not share solver state.
"""

from typing import Optional, Union

import z3


Value = Union[int, bool]

_BV_WIDTH = 64


class ConstantFolder:
    """Folds MIR unary and binary operations to constants when possible."""

    def __init__(self, ctx: Optional[z3.Context] = None):
        self.ctx = ctx if ctx is not None else z3.Context()

    # =========================================================================
    # Terms
    # =========================================================================

    def term(self, value: Optional[Value], name: str, is_bool: bool = False) -> z3.ExprRef:
        """Literal for a known value, symbol for an unknown one."""
        if isinstance(value, bool):
            return z3.BoolVal(value, self.ctx)
        if isinstance(value, int):
            return z3.IntVal(value, self.ctx)
        if is_bool:
            return z3.Bool(name, self.ctx)
        return z3.Int(name, self.ctx)

    def _as_int(self, expr: z3.ExprRef) -> z3.ArithRef:
        if z3.is_bool(expr):
            return z3.If(expr, z3.IntVal(1, self.ctx), z3.IntVal(0, self.ctx))
        return expr

    def _as_bv(self, expr: z3.ExprRef) -> z3.BitVecRef:
        return z3.Int2BV(self._as_int(expr), _BV_WIDTH)

    def _abs(self, expr: z3.ArithRef) -> z3.ArithRef:
        return z3.If(expr >= 0, expr, -expr)

    def _trunc_div(self, a: z3.ArithRef, b: z3.ArithRef) -> z3.ArithRef:
        quotient = self._abs(a) / self._abs(b)
        return z3.If((a >= 0) == (b >= 0), quotient, -quotient)

    # =========================================================================
    # Folding
    # =========================================================================

    def binary(self, op: str, left: z3.ExprRef, right: z3.ExprRef) -> Optional[z3.ExprRef]:
        """Build the Z3 expression of a binary operation, None if not modelled."""
        both_bool = z3.is_bool(left) and z3.is_bool(right)

        if op in ("Eq", "Ne"):
            if not both_bool:
                left, right = self._as_int(left), self._as_int(right)
            return left == right if op == "Eq" else left != right

        if both_bool and op in ("BitAnd", "BitOr", "BitXor"):
            if op == "BitAnd":
                return z3.And(left, right)
            if op == "BitOr":
                return z3.Or(left, right)
            return z3.Xor(left, right)

        if op in ("BitAnd", "BitOr", "BitXor", "Shl", "Shr"):
            a, b = self._as_bv(left), self._as_bv(right)
            if op == "BitAnd":
                result = a & b
            elif op == "BitOr":
                result = a | b
            elif op == "BitXor":
                result = a ^ b
            elif op == "Shl":
                result = a << b
            else:
                result = a >> b
            return z3.BV2Int(result, is_signed=True)

        a, b = self._as_int(left), self._as_int(right)
        if op in ("Add", "AddUnchecked", "AddWithOverflow"):
            return a + b
        if op in ("Sub", "SubUnchecked", "SubWithOverflow"):
            return a - b
        if op in ("Mul", "MulUnchecked", "MulWithOverflow"):
            return a * b
        if op == "Div":
            return self._trunc_div(a, b)
        if op == "Rem":
            return a - b * self._trunc_div(a, b)
        if op == "Lt":
            return a < b
        if op == "Le":
            return a <= b
        if op == "Gt":
            return a > b
        if op == "Ge":
            return a >= b
        return None

    def unary(self, op: str, operand: z3.ExprRef) -> Optional[z3.ExprRef]:
        """Build the Z3 expression of a unary operation, None if not modelled."""
        if op == "Not":
            if z3.is_bool(operand):
                return z3.Not(operand)
            return z3.BV2Int(~self._as_bv(operand), is_signed=True)
        if op == "Neg":
            return -self._as_int(operand)
        return None

    def evaluate(self, expr: Optional[z3.ExprRef]) -> Optional[Value]:
        """Simplify an expression; return its value if it is a literal."""
        if expr is None:
            return None
        simplified = z3.simplify(expr)
        if z3.is_true(simplified):
            return True
        if z3.is_false(simplified):
            return False
        if z3.is_int_value(simplified):
            return simplified.as_long()
        return None

    def fold_binary(self, op: str, left: z3.ExprRef, right: z3.ExprRef) -> Optional[Value]:
        return self.evaluate(self.binary(op, left, right))

    def fold_unary(self, op: str, operand: z3.ExprRef) -> Optional[Value]:
        return self.evaluate(self.unary(op, operand))
