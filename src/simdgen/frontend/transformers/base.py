"""
Kernel AST Transformer
Converts the lark parse tree of a kernel file into SourceFileIR.
"""

import logging
from typing import List, Optional, Tuple

from lark import Token, v_args

from ...ir.nodes import BlockIR, FunctionIR, ParamIR, ReturnIR, SourceFileIR
from ...shared.types import classify_param_type
from ...utils.config import DEFAULT_SOURCE_NAME
from .statements import StatementTransformer

logger = logging.getLogger(__name__)

NameGroup = Tuple[List[str], str]


@v_args(inline=True, meta=True)
class KernelTransformer(StatementTransformer):
    """
    Top-level transformer: package, imports and function declarations.

    Parameter classification happens here so the IR carries each
    parameter's semantic kind (array, scalar-int, scalar-float, vector).
    """

    def __init__(self, source_file: str = DEFAULT_SOURCE_NAME, source_text: str = ""):
        super().__init__(source_file, source_text)

    def start(self, meta, package, *decls) -> SourceFileIR:
        imports: List[str] = []
        functions: List[FunctionIR] = []
        for decl in decls:
            if isinstance(decl, FunctionIR):
                functions.append(decl)
            elif isinstance(decl, list):
                imports.extend(decl)
        return SourceFileIR(package, imports, functions, self._loc(meta))

    def package_clause(self, meta, name: Token) -> str:
        return str(name)

    def import_decl(self, meta, *specs) -> List[str]:
        return [s for s in specs if s is not None]

    def import_spec(self, meta, alias, path: Token) -> str:
        return str(path)[1:-1]

    # -- functions --------------------------------------------------------

    def func_decl(self, meta, name: Token, type_params, params, results, body: BlockIR) -> FunctionIR:
        type_params = type_params or []
        param_irs: List[ParamIR] = []
        for names, type_name, location in params:
            kind, elem = classify_param_type(type_name, type_params)
            for param_name in names:
                param_irs.append(ParamIR(param_name, type_name, kind, elem, location))
        logger.debug("parsed function %s (%d params)", name, len(param_irs))
        return FunctionIR(str(name), type_params, param_irs, results or [], body, self._loc(meta))

    def type_params(self, meta, *groups) -> List[str]:
        names: List[str] = []
        for group in groups:
            if group is not None:
                names.extend(group[0])
        return names

    def type_param_group(self, meta, names: List[str], constraint: str) -> NameGroup:
        return names, constraint

    def constraint(self, meta, *types: str) -> str:
        return " | ".join(types)

    def params(self, meta, *groups) -> list:
        return [g for g in groups if g is not None]

    def param_group(self, meta, names: List[str], type_name: str):
        return names, type_name, self._loc(meta)

    def result_group(self, meta, names: List[str], type_name: str) -> NameGroup:
        return names, type_name

    def single_result(self, meta, type_name: str) -> List[ReturnIR]:
        return [ReturnIR(None, type_name, self._loc(meta))]

    def named_results(self, meta, *groups) -> List[ReturnIR]:
        results: List[ReturnIR] = []
        for group in groups:
            if group is None:
                continue
            names, type_name = group
            results.extend(ReturnIR(n, type_name, self._loc(meta)) for n in names)
        return results

    def unnamed_results(self, meta, *types: Optional[str]) -> List[ReturnIR]:
        return [ReturnIR(None, t, self._loc(meta)) for t in types if t is not None]
