"""
Power Flow Module
=================

Bus classification, renumbering, the AC and DC solvers and the ``runpf``
driver.  Import the submodules directly, e.g.
``from powerflow.runpf import runpf``.
"""
