"""
tokensim: Self-Stabilizing Token Redistribution Simulator

A simulator for a protocol in which independent processes, each holding a
multiset of colored tokens, trade single tokens through point-to-point
messages until every process holds tokens of one color only (or as close to
that as the global token counts allow).

Core concepts:
- A process asks one partner at a time for one token of the color it wants
- Partners hand over tokens they do not want for themselves
- Rotated color priorities steer processes towards distinct colors
- An oracle decides when a process, and the whole system, is finished
- Stagnation and iteration limits guarantee termination

See SPEC_FULL.md and DESIGN.md for full details.
"""

__version__ = "0.1.0"
