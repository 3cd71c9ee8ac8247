"""
Screen agent: a step-by-step guide for completing a goal on a desktop.

This package contains modular pieces for capturing the screen, planning
milestones with a vision LLM, producing one instruction at a time, and
checking on screen whether each instruction was carried out.
"""
