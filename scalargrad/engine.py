"""
ScalarGrad Engine: Reverse-Mode Autodiff over Scalars
=====================================================

Every number that takes part in a computation is wrapped in a ``Node``. Each
operation builds a new Node that remembers which operation produced it and
which Nodes it was computed from. Calling ``backward()`` on the final Node
walks that graph in reverse topological order and applies the chain rule,
leaving d(root)/d(node) in every reachable node's ``grad``.

Gradient rules are not stored per node. A node carries an ``Op`` tag and its
operands, and a single registry maps each tag to the rule that distributes
the node's gradient to its operands.

Arithmetic follows IEEE-754: division by zero, logs of non-positive bases and
exponential overflow produce ``inf``/``nan`` instead of raising.
"""

from __future__ import annotations

import enum
import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


# Type alias for numeric inputs
Numeric = Union[int, float, np.integer, np.floating]

_NUMERIC_TYPES = (int, float, np.integer, np.floating)


class Op(enum.Enum):
    """Tag identifying the operation that produced a Node."""

    NONE = ''
    ADD = '+'
    MUL = '*'
    POW = 'pow'
    EXP = 'exp'
    TANH = 'tanh'
    RELU = 'relu'


# Number of operands each operation takes
_ARITY = {
    Op.NONE: 0,
    Op.ADD: 2,
    Op.MUL: 2,
    Op.POW: 2,
    Op.EXP: 1,
    Op.TANH: 1,
    Op.RELU: 1,
}


def _check_numeric(x: object, what: str) -> None:
    if isinstance(x, bool) or not isinstance(x, _NUMERIC_TYPES):
        raise TypeError(
            f"{what} must be a real number, got {type(x).__name__}"
        )


class Node:
    """
    A scalar in a computation graph.

    Attributes:
        value: The forward value. Fixed for derived nodes; leaves can be
            re-assigned between passes with ``assign()``.
        grad: d(root)/d(self) after the most recent backward pass that
            reached this node.
        operands: The nodes this one was computed from, in the order
            gradients are attributed.
        op: The operation tag (``Op.NONE`` for leaves).
        label: Optional name, used only for display.

    Example:
        >>> a = Node(2.0, label='a')
        >>> b = Node(3.0, label='b')
        >>> c = a * b + a
        >>> c.backward()
        >>> a.grad  # dc/da = b + 1
        4.0
        >>> b.grad  # dc/db = a
        2.0
    """

    __slots__ = ('_value', 'grad', '_operands', '_op', 'label')

    def __init__(
        self,
        value: Numeric,
        _operands: Tuple[Node, ...] = (),
        _op: Op = Op.NONE,
        label: str = ''
    ) -> None:
        """
        Initialize a Node.

        Args:
            value: The scalar to store.
            _operands: Operand nodes (set by operation constructors).
            _op: Operation tag (set by operation constructors).
            label: Optional name for debugging.

        Raises:
            TypeError: If value is not a real number or an operand is not
                a Node.
            ValueError: If the operand count does not match the operation.
        """
        _check_numeric(value, "Node value")
        _operands = tuple(_operands)
        for operand in _operands:
            if not isinstance(operand, Node):
                raise TypeError(
                    f"operand must be a Node, got {type(operand).__name__}"
                )
        _op = Op(_op)
        if len(_operands) != _ARITY[_op]:
            raise ValueError(
                f"{_op.name} takes {_ARITY[_op]} operand(s), got {len(_operands)}"
            )

        self._value: float = float(value)
        self.grad: float = 0.0
        self._operands: Tuple[Node, ...] = tuple(_operands)
        self._op: Op = _op
        self.label: str = label

    @property
    def value(self) -> float:
        return self._value

    @property
    def operands(self) -> Tuple[Node, ...]:
        return self._operands

    @property
    def op(self) -> Op:
        return self._op

    @property
    def is_leaf(self) -> bool:
        return self._op is Op.NONE

    def assign(self, value: Numeric) -> None:
        """
        Replace the value of a leaf node.

        Optimizers use this to move parameters between forward passes.
        Graphs built before the assignment keep the forward values they
        were computed with.

        Raises:
            ValueError: If this node was produced by an operation.
        """
        if not self.is_leaf:
            raise ValueError(
                f"cannot assign to a node produced by {self._op.value!r}"
            )
        _check_numeric(value, "Node value")
        self._value = float(value)

    def __repr__(self) -> str:
        if self.label:
            return f"Node({self.label}={self._value:.4f}, grad={self.grad:.4f})"
        return f"Node(value={self._value:.4f}, grad={self.grad:.4f})"

    # =========================================================================
    # Operator Surface
    # =========================================================================

    def __add__(self, other: Union[Node, Numeric]) -> Node:
        return add(self, other)

    def __radd__(self, other: Numeric) -> Node:
        return add(other, self)

    def __sub__(self, other: Union[Node, Numeric]) -> Node:
        return sub(self, other)

    def __rsub__(self, other: Numeric) -> Node:
        return sub(other, self)

    def __mul__(self, other: Union[Node, Numeric]) -> Node:
        return mul(self, other)

    def __rmul__(self, other: Numeric) -> Node:
        return mul(other, self)

    def __truediv__(self, other: Union[Node, Numeric]) -> Node:
        return div(self, other)

    def __rtruediv__(self, other: Numeric) -> Node:
        return div(other, self)

    def __pow__(self, other: Union[Node, Numeric]) -> Node:
        return power(self, other)

    def __rpow__(self, other: Numeric) -> Node:
        return power(other, self)

    def __neg__(self) -> Node:
        return neg(self)

    def exp(self) -> Node:
        return exp(self)

    def tanh(self) -> Node:
        return tanh(self)

    def relu(self) -> Node:
        return relu(self)

    # =========================================================================
    # Backpropagation
    # =========================================================================

    def local_backward(self) -> None:
        """Add this node's contribution to its operands' gradients."""
        _GRADIENT_RULES[self._op](self)

    def backward(self) -> None:
        """Compute d(self)/d(n) for every node n reachable from self."""
        backward(self)


NodeLike = Union[Node, Numeric]


# =============================================================================
# Leaf Construction
# =============================================================================

def leaf(value: Numeric, label: str = '') -> Node:
    """Create an input node with no operands."""
    return Node(value, label=label)


def constant(x: NodeLike) -> Node:
    """
    Promote a bare number to a fresh leaf; Nodes pass through unchanged.

    Raises:
        TypeError: If x is neither a Node nor a real number (including None).
    """
    if isinstance(x, Node):
        return x
    _check_numeric(x, "operand")
    return Node(x)


# =============================================================================
# Operation Constructors
# =============================================================================

def add(a: NodeLike, b: NodeLike) -> Node:
    """out = a + b"""
    a, b = constant(a), constant(b)
    return Node(a.value + b.value, (a, b), Op.ADD)


def mul(a: NodeLike, b: NodeLike) -> Node:
    """out = a * b"""
    a, b = constant(a), constant(b)
    return Node(a.value * b.value, (a, b), Op.MUL)


def power(a: NodeLike, b: NodeLike) -> Node:
    """
    out = a ** b, differentiable in both base and exponent.

    A negative base with a non-integer exponent gives ``nan`` rather than a
    complex number, and a zero base with a negative exponent gives ``inf``.
    """
    a, b = constant(a), constant(b)
    with np.errstate(all='ignore'):
        value = np.power(a.value, b.value)
    return Node(float(value), (a, b), Op.POW)


def exp(a: NodeLike) -> Node:
    """out = e ** a (overflows to ``inf``)."""
    a = constant(a)
    with np.errstate(all='ignore'):
        value = np.exp(a.value)
    return Node(float(value), (a,), Op.EXP)


def tanh(a: NodeLike) -> Node:
    """out = tanh(a)"""
    a = constant(a)
    return Node(float(np.tanh(a.value)), (a,), Op.TANH)


def relu(a: NodeLike) -> Node:
    """out = max(0, a); ``nan`` stays ``nan``."""
    a = constant(a)
    return Node(float(np.maximum(0.0, a.value)), (a,), Op.RELU)


def neg(a: NodeLike) -> Node:
    """out = a * -1"""
    return mul(a, constant(-1.0))


def sub(a: NodeLike, b: NodeLike) -> Node:
    """out = a + (-b)"""
    return add(a, neg(b))


def div(a: NodeLike, b: NodeLike) -> Node:
    """out = a * b ** -1"""
    return mul(a, power(b, constant(-1.0)))


# =============================================================================
# Gradient Rules
# =============================================================================
# Each rule reads out.grad as it stands when called and adds into the
# operands. Reverse topological order guarantees out.grad is final by then.

def _leaf_rule(out: Node) -> None:
    pass


def _add_rule(out: Node) -> None:
    a, b = out.operands
    a.grad += out.grad
    b.grad += out.grad


def _mul_rule(out: Node) -> None:
    a, b = out.operands
    a.grad += out.grad * b.value
    b.grad += out.grad * a.value


def _pow_rule(out: Node) -> None:
    # ln(a) is nan for a < 0 and -inf for a == 0; the exponent's gradient
    # picks that up and propagates it without raising.
    a, b = out.operands
    g = out.grad
    with np.errstate(all='ignore'):
        a.grad += float(g * b.value * np.power(a.value, b.value - 1.0))
        b.grad += float(g * np.log(a.value) * np.power(a.value, b.value))


def _exp_rule(out: Node) -> None:
    (a,) = out.operands
    with np.errstate(all='ignore'):
        a.grad += float(out.grad * np.exp(a.value))


def _tanh_rule(out: Node) -> None:
    (a,) = out.operands
    t = np.tanh(a.value)
    a.grad += float(out.grad * (1.0 - t * t))


def _relu_rule(out: Node) -> None:
    (a,) = out.operands
    a.grad += out.grad * (1.0 if a.value > 0 else 0.0)


_GRADIENT_RULES: Dict[Op, Callable[[Node], None]] = {
    Op.NONE: _leaf_rule,
    Op.ADD: _add_rule,
    Op.MUL: _mul_rule,
    Op.POW: _pow_rule,
    Op.EXP: _exp_rule,
    Op.TANH: _tanh_rule,
    Op.RELU: _relu_rule,
}


# =============================================================================
# Graph Traversal
# =============================================================================

def topological_sort(root: Node) -> List[Node]:
    """
    Order every node reachable from ``root`` so each follows its operands.

    Depth-first postorder with operands visited in order. Nodes are tracked
    by identity, so a sub-graph shared by several consumers appears once.
    The traversal uses an explicit stack, so long chains are not limited by
    the recursion limit.

    Args:
        root: The node to sort from.

    Returns:
        List of Nodes with ``root`` last.

    Example:
        >>> a = Node(1.0)
        >>> b = Node(2.0)
        >>> c = a + b
        >>> d = c * a
        >>> topological_sort(d) == [a, b, c, d]
        True
    """
    if not isinstance(root, Node):
        raise TypeError(f"root must be a Node, got {type(root).__name__}")

    topo: List[Node] = []
    visited = set()
    stack: List[Tuple[Node, bool]] = [(root, False)]

    while stack:
        node, expanded = stack.pop()
        if expanded:
            topo.append(node)
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))
        stack.append((node, True))
        for operand in reversed(node.operands):
            if id(operand) not in visited:
                stack.append((operand, False))

    return topo


def backward(root: Node) -> None:
    """
    Reverse-mode differentiation from ``root``.

    The algorithm:
    1. Build the topological order of the graph under ``root``
    2. Zero the gradient of every node in it
    3. Seed d(root)/d(root) = 1
    4. Apply each node's gradient rule, outputs before operands

    Because step 2 zeroes first, calling this twice on the same root gives
    the same gradients both times. Only nodes reachable from ``root`` are
    reset; other graphs sharing leaves keep whatever they last held.

    Example:
        >>> x = Node(2.0)
        >>> y = x ** 2 + 3 * x
        >>> backward(y)
        >>> x.grad  # dy/dx = 2x + 3
        7.0
    """
    topo = topological_sort(root)
    logger.debug("backward pass over %d nodes", len(topo))

    for node in topo:
        node.grad = 0.0

    root.grad = 1.0

    for node in reversed(topo):
        node.local_backward()


# =============================================================================
# Graph Export
# =============================================================================

_RECORD_SPECIAL = re.compile(r'([\\"|{}<>])')


def _escape_record(text: str) -> str:
    """Backslash-escape characters that are structural in a DOT record label."""
    return _RECORD_SPECIAL.sub(r'\\\1', text)


def draw_graph(root: Node, format: str = 'text') -> str:
    """
    Render the graph under ``root`` for inspection.

    Args:
        root: Root node of the graph to render.
        format: 'text' for a line per node, 'dot' for Graphviz DOT.

    Returns:
        String representation of the graph.

    Raises:
        ValueError: If format is not 'text' or 'dot'.
    """
    if format not in ('text', 'dot'):
        raise ValueError(f"unknown graph format {format!r}")

    nodes = topological_sort(root)
    node_ids = {id(n): i for i, n in enumerate(nodes)}

    def name(n: Node) -> str:
        # Labels repeat across neurons, so the id always goes alongside
        nid = f'v{node_ids[id(n)]}'
        return f'{n.label}[{nid}]' if n.label else nid

    if format == 'dot':
        lines = ['digraph G {', '  rankdir=LR;']
        for node in nodes:
            nid = node_ids[id(node)]
            lines.append(
                f'  n{nid} [label="{{{_escape_record(name(node))}|'
                f'value={node.value:.4f}|'
                f'grad={node.grad:.4f}}}", shape=record];'
            )
            if not node.is_leaf:
                op_id = f'op{nid}'
                lines.append(f'  {op_id} [label="{node.op.value}", shape=circle];')
                lines.append(f'  {op_id} -> n{nid};')
                for operand in node.operands:
                    lines.append(f'  n{node_ids[id(operand)]} -> {op_id};')
        lines.append('}')
        return '\n'.join(lines)

    lines = ['Computation Graph:', '=' * 50]
    for node in reversed(nodes):
        op_str = ''
        if not node.is_leaf:
            op_str = f' = {node.op.value}({", ".join(name(p) for p in node.operands)})'
        lines.append(
            f'{name(node):>10}: value={node.value:>10.4f}, '
            f'grad={node.grad:>10.4f}{op_str}'
        )
    return '\n'.join(lines)


def write_dot(root: Node, path: Union[str, Path]) -> Path:
    """Write the DOT rendering of ``root``'s graph to ``path``."""
    path = Path(path)
    path.write_text(draw_graph(root, format='dot') + '\n')
    logger.info("DOT representation written to %s", path)
    return path
