import itertools

import pytest

from core.cnf import (
    CnfInvariantError,
    cnf,
    distribute_or_over_and,
    eliminate_biconditionals,
    eliminate_implications,
    move_not_inward,
    split_clause,
)
from core.formula_parser import parse_formula
from core.prop import (
    AndNode,
    FalseNode,
    IffNode,
    ImplicNode,
    NotNode,
    OrNode,
    Prop,
    SymbolNode,
    TrueNode,
    conjoin,
    evaluate,
    iterate_symbols,
    symbols,
)


P = SymbolNode("p")
Q = SymbolNode("q")
R = SymbolNode("r")
S = SymbolNode("s")

FORMULAS = [
    "p & q => r",
    "p <=> q",
    "(p <=> q) <=> r",
    "~ (p | q) & (r => s)",
    "(p & q) | (r & s)",
    "p | (q & (r | ~ s))",
    "~ (p <=> ~ q) | False",
    "~ ~ ~ p => True",
    "(p => q) => (~ q => ~ p)",
    "p & ~ p",
    "((p | q) & r) <=> (s | ~ r)",
]


def _nodes(node: Prop):
    yield node
    if isinstance(node, NotNode):
        yield from _nodes(node.child)
    elif isinstance(node, (AndNode, OrNode, ImplicNode, IffNode)):
        yield from _nodes(node.left)
        yield from _nodes(node.right)


def _models(names):
    names = sorted(names)
    for values in itertools.product([False, True], repeat=len(names)):
        yield dict(zip(names, values))


@pytest.mark.parametrize("formula", FORMULAS)
def test_cnf_preserves_truth_value_under_every_model(formula):
    prop = parse_formula(formula)
    names = symbols(prop)
    assert len(names) <= 4
    combined = conjoin(cnf(prop.clone()))
    for model in _models(names):
        assert evaluate(prop, model) == evaluate(combined, model), model


@pytest.mark.parametrize("formula", FORMULAS)
def test_each_pass_establishes_its_postcondition(formula):
    node = eliminate_biconditionals(parse_formula(formula))
    assert not any(isinstance(n, IffNode) for n in _nodes(node))

    node = eliminate_implications(node)
    assert not any(isinstance(n, (IffNode, ImplicNode)) for n in _nodes(node))

    node = move_not_inward(node)
    assert all(isinstance(n.child, SymbolNode) for n in _nodes(node) if isinstance(n, NotNode))

    node = distribute_or_over_and(node)
    for n in _nodes(node):
        if isinstance(n, OrNode):
            assert not isinstance(n.left, AndNode)
            assert not isinstance(n.right, AndNode)


@pytest.mark.parametrize("formula", FORMULAS)
def test_clauses_never_contain_a_conjunction(formula):
    for clause in cnf(parse_formula(formula)):
        for n in _nodes(clause):
            assert isinstance(n, (OrNode, NotNode, SymbolNode, TrueNode, FalseNode))
            if isinstance(n, NotNode):
                assert isinstance(n.child, SymbolNode)


def test_eliminate_biconditionals():
    assert eliminate_biconditionals(IffNode(P, Q)) == AndNode(ImplicNode(P, Q), ImplicNode(Q, P))


def test_eliminate_biconditionals_copies_operands():
    result = eliminate_biconditionals(IffNode(AndNode(P, Q), R))
    assert result.left.left == result.right.right
    assert result.left.left is not result.right.right


def test_eliminate_biconditionals_nested_inner_first():
    result = eliminate_biconditionals(NotNode(IffNode(P, IffNode(Q, R))))
    assert not any(isinstance(n, IffNode) for n in _nodes(result))
    assert isinstance(result, NotNode)


def test_eliminate_implications():
    assert eliminate_implications(ImplicNode(P, ImplicNode(Q, R))) == OrNode(NotNode(P), OrNode(NotNode(Q), R))


def test_double_negation_is_removed():
    assert move_not_inward(NotNode(NotNode(P))) == P
    assert move_not_inward(NotNode(NotNode(NotNode(P)))) == NotNode(P)


def test_de_morgan_over_conjunction_and_disjunction():
    assert move_not_inward(NotNode(AndNode(P, Q))) == OrNode(NotNode(P), NotNode(Q))
    assert move_not_inward(NotNode(OrNode(P, NotNode(Q)))) == AndNode(NotNode(P), Q)
    assert move_not_inward(NotNode(AndNode(NotNode(OrNode(P, Q)), R))) == OrNode(OrNode(P, Q), NotNode(R))


def test_negated_constants_flip():
    assert move_not_inward(NotNode(TrueNode())) == FalseNode()
    assert move_not_inward(NotNode(FalseNode())) == TrueNode()
    assert move_not_inward(NotNode(P)) == NotNode(P)


@pytest.mark.parametrize(
    "node",
    [
        ImplicNode(P, Q),
        NotNode(IffNode(P, Q)),
        AndNode(P, OrNode(Q, ImplicNode(P, R))),
    ],
)
def test_move_not_inward_rejects_unexpanded_connectives(node):
    with pytest.raises(CnfInvariantError):
        move_not_inward(node)


@pytest.mark.parametrize("node", [IffNode(P, Q), AndNode(P, ImplicNode(Q, R))])
def test_distribution_rejects_unexpanded_connectives(node):
    with pytest.raises(CnfInvariantError):
        distribute_or_over_and(node)


def test_invariant_error_is_an_assertion():
    assert issubclass(CnfInvariantError, AssertionError)
    assert not issubclass(CnfInvariantError, ValueError)


def test_distribute_left_conjunction():
    result = distribute_or_over_and(OrNode(AndNode(P, Q), R))
    assert result == AndNode(OrNode(P, R), OrNode(Q, R))
    assert result.left.right is not result.right.right


def test_distribute_right_conjunction():
    assert distribute_or_over_and(OrNode(P, AndNode(Q, R))) == AndNode(OrNode(P, Q), OrNode(P, R))


def test_distribute_checks_left_before_right():
    result = distribute_or_over_and(OrNode(AndNode(P, Q), AndNode(R, S)))
    assert result == AndNode(
        AndNode(OrNode(P, R), OrNode(P, S)),
        AndNode(OrNode(Q, R), OrNode(Q, S)),
    )


def test_distribute_reaches_nested_disjunctions():
    result = distribute_or_over_and(OrNode(P, OrNode(Q, AndNode(R, S))))
    assert result == AndNode(OrNode(P, OrNode(Q, R)), OrNode(P, OrNode(Q, S)))


def test_distribute_leaves_clauses_alone():
    clause = OrNode(NotNode(P), OrNode(Q, TrueNode()))
    assert distribute_or_over_and(clause) == clause


def test_split_clause_order_is_stack_order():
    a, b, c = SymbolNode("a"), SymbolNode("b"), SymbolNode("c")
    assert split_clause(AndNode(AndNode(a, b), c)) == [c, a, b]
    assert split_clause(AndNode(a, AndNode(b, c))) == [a, b, c]
    assert split_clause(OrNode(a, b)) == [OrNode(a, b)]


def test_split_clause_handles_long_spines():
    names = [SymbolNode(f"x{i}") for i in range(5000)]
    spine = names[-1]
    for name in reversed(names[:-1]):
        spine = AndNode(name, spine)
    assert split_clause(spine) == names


def test_cnf_of_negated_conjunction_matches_de_morgan():
    clauses = cnf(NotNode(AndNode(P, Q)))
    expected = OrNode(NotNode(P), NotNode(Q))
    assert clauses == [expected]
    for model in _models({"p", "q"}):
        assert evaluate(conjoin(clauses), model) == evaluate(expected, model)


def test_cnf_of_biconditional():
    clauses = cnf(IffNode(AndNode(P, Q), R))
    assert clauses == [
        OrNode(OrNode(NotNode(P), NotNode(Q)), R),
        OrNode(NotNode(R), P),
        OrNode(NotNode(R), Q),
    ]


def test_cnf_output_has_no_shared_subtrees():
    clauses = cnf(OrNode(AndNode(P, Q), AndNode(R, S)))
    seen = set()
    for clause in clauses:
        for node in iterate_symbols(clause):
            assert id(node) not in seen
            seen.add(id(node))


def test_cnf_handles_formulas_deeper_than_the_recursion_limit():
    names = [f"x{i}" for i in range(1200)]

    clauses = cnf(parse_formula("~ (" + " | ".join(names) + ")"))
    assert len(clauses) == 1200
    assert all(isinstance(clause, NotNode) for clause in clauses)
    assert [clause.child.name for clause in clauses] == names

    clauses = cnf(parse_formula(" & ".join(f"({name} => y)" for name in names)))
    assert len(clauses) == 1200
    assert clauses[0] == OrNode(NotNode(SymbolNode("x0")), SymbolNode("y"))
    assert clauses[-1] == OrNode(NotNode(SymbolNode("x1199")), SymbolNode("y"))
