"""
Sextant -- VxWorks Image Recovery
==================================

Sextant recovers what a headerless VxWorks memory image no longer
records: the kernel symbol table, the address the image was linked to
run at, and a plausible section layout.

Capabilities:
    - Backward scan for VxWorks 5.x and 6.x symbol tables in either byte order
    - Byte-order plausibility check on recovered function addresses
    - Image base inference with header-prefix detection via ``sysInit``
    - Symbol name resolution with false-positive abort
    - ``.text``/``.data``/``.extern``/``.symtab`` section synthesis
    - Per-section entropy, JSON reports and linker-style symbol maps

References:
    - Wind River Systems. (1999). VxWorks Reference Manual 5.4.
    - Wind River Systems. (2006). VxWorks Kernel Programmer's Guide 6.3.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
