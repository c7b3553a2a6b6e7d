from functools import lru_cache

from lark import Lark

# Terminals of the guard notation. Clause and group structure is recognized by
# GuardParser; everything between the structural tokens is handed to Python's
# own grammar, so the lexer only has to split Python source faithfully.
GUARD_LEXICON = r"""
    start: (ARROW | ASSIGN | COMMA | STAR | BANG
           | LBRACE | RBRACE | LPAR | RPAR | LSQB | RSQB
           | STRING | NUMBER | NAME | OP)*

    // --- STRUCTURE ---
    ARROW: "=>"
    ASSIGN: "="
    COMMA: ","
    STAR: "*"
    BANG: "!"

    LBRACE: "{"
    RBRACE: "}"
    LPAR: "("
    RPAR: ")"
    LSQB: "["
    RSQB: "]"

    // --- HOST TOKENS ---
    STRING.2: /(?:[rRbBuUfF]{1,2})?(?:'''(?:[^\\]|\\[\s\S])*?'''|\"\"\"(?:[^\\]|\\[\s\S])*?\"\"\"|'(?:[^'\\\n]|\\[\s\S])*'|"(?:[^"\\\n]|\\[\s\S])*")/
    NUMBER.2: /0[xXoObB][0-9a-fA-F_]+|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][-+]?\d+)?[jJ]?/
    NAME: /[^\W\d]\w*/
    OP: /\.\.\.|\*\*=|\/\/=|>>=|<<=|\*\*|\/\/|>>|<<|==|!=|<=|>=|:=|->|[-+*\/%@&|^]=|[-+\/%@&|^~<>.:;]/

    %import common.WS
    %ignore WS
    %ignore /#[^\n]*/
    %ignore /\\\r?\n/
"""

OPENERS = {"LBRACE": "RBRACE", "LPAR": "RPAR", "LSQB": "RSQB"}
CLOSERS = {closer: opener for opener, closer in OPENERS.items()}


@lru_cache(maxsize=None)
def build_lexer() -> Lark:
    return Lark(GUARD_LEXICON, parser="lalr", lexer="basic")
