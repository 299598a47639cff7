"""
Example programs, hand-compiled to SECD listings.

Each mirrors a source expression of the small applicative language; the
compilation scheme is the usual one:

  Const n          LDC n
  Var x            LD <de Bruijn index of x>
  e1 op e2         [e1] [e2] ADD|SUB|MUL
  Lambda x e       LDF L        L: [e] RTN
  App f a          [f] [a] AP
  IfZero c t e     [c] SEL T E  ...   T: [t] JOIN   E: [e] JOIN
  Fix (\\f. \\x. e)  LDRF L       L: [e] RTN      (x at index 0, f at 1)
  Let x e1 e2      App (Lambda x e2) e1
"""

from __future__ import annotations


# 2 + 3
ADD = """\
    LDC 2
    LDC 3
    ADD
    HALT
"""

# 5 * (42 + 23)
ARITH = """\
    LDC 5
    LDC 42
    LDC 23
    ADD
    MUL
    HALT
"""

# (let x = 42 in \\y. x + y) 23
CLOSURE = """\
    LDF let_x
    LDC 42
    AP
    LDC 23
    AP
    HALT
let_x:
    LDF add_y
    RTN
add_y:
    LD 1            ; x
    LD 0            ; y
    ADD
    RTN
"""


def choose(x: int, y: int) -> str:
    """(\\x. \\y. ifzero (x - y) y x) applied to x and y."""
    return f"""\
    LDF fun_x
    LDC {x}
    AP
    LDC {y}
    AP
    HALT
fun_x:
    LDF fun_y
    RTN
fun_y:
    LD 1
    LD 0
    SUB
    SEL equal differ
    RTN
equal:
    LD 0
    JOIN
differ:
    LD 1
    JOIN
"""


def factorial(n: int) -> str:
    """Fix (\\f. \\n. ifzero n 1 (f (n - 1) * n)) applied to n."""
    return f"""\
    LDRF fact
    LDC {n}
    AP
    HALT
fact:
    LD 0            ; n
    SEL base step
    RTN
base:
    LDC 1
    JOIN
step:
    LD 1            ; f
    LD 0
    LDC 1
    SUB
    AP
    LD 0
    MUL
    JOIN
"""


def sum_squares(n: int) -> str:
    """Fix (\\f. \\n. ifzero n 0 (n * n + f (n - 1))) applied to n."""
    return f"""\
    LDRF sum
    LDC {n}
    AP
    HALT
sum:
    LD 0
    SEL zero more
    RTN
zero:
    LDC 0
    JOIN
more:
    LD 0
    LD 0
    MUL
    LD 1
    LD 0
    LDC 1
    SUB
    AP
    ADD
    JOIN
"""


EXAMPLES = {
    "add": ADD,
    "arith": ARITH,
    "closure": CLOSURE,
    "choose": choose(3, 7),
    "factorial": factorial(10),
    "sum-squares": sum_squares(10),
    "diverge": factorial(-1),
}

EXPECTED = {
    "add": 5,
    "arith": 325,
    "closure": 65,
    "choose": 3,
    "factorial": 3628800,
    "sum-squares": 385,
}
