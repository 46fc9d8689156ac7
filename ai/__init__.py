"""
AI Decision Module

Asks an LLM for a per-token buy/sell recommendation with confidence and size.
The model can only recommend: the decision gate and position sizer remain
the hard authority on whether a swap happens and how large it is.
"""
