"""Template compiler: options, transforms and code generation.

Entry points live in submodules: `kiln.compiler.core.base_compile`,
`kiln.compiler.transform.transform` and `kiln.compiler.codegen.generate`.
"""
