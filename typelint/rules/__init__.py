"""
Rules shipped with typelint.

``typelint --discover typelint.rules`` (the default) imports every module in
this package and registers whatever each module lists in ``RULES``, either
rule instances or rule classes taking no arguments. A minimal rule::

    from typelint.engine.types import Finding, Requires, RuleMeta

    class NoDynamicOperands:
        meta = RuleMeta(id="types.no_dynamic_operands", category="types", tier=1,
                        priority="P2", langs=["typescript"])
        requires = Requires(syntax=True, type_info=True)

        def visit(self, ctx):
            for op in ctx.adapter.iter_binary_ops(ctx.tree):
                start, end = op.left_range
                ...

    RULES = [NoDynamicOperands]
"""
