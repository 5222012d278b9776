"""Template layer -- models, validation, render contexts and the compiler.

Import from the submodules directly (``notify_templates.template.compiler``
and so on); this package module stays empty so the aggregation and
rendering layers can import the models without pulling in the compiler.
"""
