from stitchgraph.pattern import Pattern

# Codes sort in the same order as the tokens, so token order is color index order
COLORS = {
    'A': ('310', '#000000'),
    'B': ('321', '#CE1938'),
    'C': ('666', '#EC2130'),
    'D': ('700', '#2E7D09'),
}


def make_pattern(rows):
    return Pattern.from_rows(rows, COLORS)


def reversed_pattern(pattern):
    return Pattern(list(reversed(pattern.stitches)), pattern.width, pattern.height)
