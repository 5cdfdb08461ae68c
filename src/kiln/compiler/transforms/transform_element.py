"""Element lowering: turn an element or component into a `VNodeCall`.

Runs on exit, after the children have been transformed, and works out:

- the vnode tag: a literal tag name for elements, a resolved component
  reference for components
- the props expression: static attributes, directive transform output,
  ``merge_props`` for ``v-bind="obj"`` / ``v-on="obj"`` spreads
- the patch flag and the names of dynamic props
- component slots and runtime (custom) directives
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kiln.compiler.hoist import get_constant_type
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.transforms.v_slot import build_slots
from kiln.compiler.utils import (
    code_expression,
    create_vnode_call,
    find_prop,
    is_static_arg_of,
    is_static_exp,
    static_expression,
    to_valid_asset_id,
)
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    ArrayExpression,
    Attribute,
    CacheExpression,
    CallExpression,
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Interpolation,
    Node,
    ObjectExpression,
    Property,
    SimpleExpression,
    Text,
)
from kiln.utils.constants import PatchFlags
from kiln.utils.strings import is_handler_key

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext

# Directives with compile-time meaning only; never applied at runtime
BUILTIN_DIRECTIVES = frozenset(
    {"bind", "cloak", "else-if", "else", "for", "if", "model", "on", "once", "pre", "slot", "memo", "is"}
)

RESERVED_PROPS = frozenset(
    {
        "key",
        "ref",
        "ref_for",
        "ref_key",
        "on_vnode_before_mount",
        "on_vnode_mounted",
        "on_vnode_before_update",
        "on_vnode_updated",
        "on_vnode_before_unmount",
        "on_vnode_unmounted",
    }
)


@dataclass
class PropsBuildResult:
    props: Any = None
    directives: list[Directive] = field(default_factory=list)
    patch_flag: int = 0
    dynamic_prop_names: list[str] = field(default_factory=list)
    should_use_block: bool = False
    runtime_helpers: dict[int, RuntimeHelper] = field(default_factory=dict)


def transform_element(node: Node, context: TransformContext) -> ExitFn:
    def post_transform_element() -> None:
        current = context.current_node
        if not isinstance(current, Element) or current.tag_type not in (ElementType.ELEMENT, ElementType.COMPONENT):
            return
        _lower_element(current, context)

    return post_transform_element


def _lower_element(node: Element, context: TransformContext) -> None:
    is_component = node.tag_type == ElementType.COMPONENT
    vnode_tag: Any = resolve_component_type(node, context) if is_component else node.tag
    is_dynamic_component = isinstance(vnode_tag, CallExpression) and (
        vnode_tag.callee == RuntimeHelper.RESOLVE_DYNAMIC_COMPONENT
    )

    vnode_props: Any = None
    vnode_children: Any = None
    patch_flag = 0
    vnode_dynamic_props: SimpleExpression | None = None
    vnode_directives: ArrayExpression | None = None
    should_use_block = is_dynamic_component or (not is_component and node.tag in ("svg", "foreignObject"))

    if node.props:
        result = build_props(node, context)
        vnode_props = result.props
        patch_flag = result.patch_flag
        if result.directives:
            vnode_directives = ArrayExpression(
                elements=[build_directive_args(d, context, result.runtime_helpers) for d in result.directives]
            )
        if result.should_use_block:
            should_use_block = True
        dynamic_prop_names = result.dynamic_prop_names
    else:
        dynamic_prop_names = []

    if node.children:
        if is_component:
            slots, has_dynamic_slots = build_slots(node, context)
            vnode_children = slots
            if has_dynamic_slots:
                patch_flag |= PatchFlags.DYNAMIC_SLOTS
        elif len(node.children) == 1:
            child = node.children[0]
            has_dynamic_text_child = isinstance(child, (Interpolation, CompoundExpression))
            if has_dynamic_text_child and get_constant_type(child, context) == ConstantType.NOT_CONSTANT:
                patch_flag |= PatchFlags.TEXT
            if has_dynamic_text_child or isinstance(child, Text):
                vnode_children = child
            else:
                vnode_children = node.children
        else:
            vnode_children = node.children

    if dynamic_prop_names:
        vnode_dynamic_props = code_expression(repr(dynamic_prop_names), ConstantType.CAN_HOIST)

    node.codegen_node = create_vnode_call(
        context,
        vnode_tag,
        vnode_props,
        vnode_children,
        int(patch_flag) if patch_flag else None,
        vnode_dynamic_props,
        vnode_directives,
        is_block=should_use_block,
        disable_tracking=False,
        is_component=is_component,
        loc=node.loc,
    )


def resolve_component_type(node: Element, context: TransformContext) -> SimpleExpression | CallExpression:
    """Expression evaluating to the component a tag refers to."""
    tag = node.tag
    is_prop = find_prop(node, "is")
    if is_prop is not None:
        if tag == "component":
            if isinstance(is_prop, Attribute):
                exp: Any = static_expression(is_prop.value.content if is_prop.value else "")
            else:
                exp = is_prop.exp
            if exp is not None:
                return CallExpression(callee=context.helper(RuntimeHelper.RESOLVE_DYNAMIC_COMPONENT), arguments=[exp])
        elif isinstance(is_prop, Attribute) and is_prop.value and is_prop.value.content.startswith("vue:"):
            tag = is_prop.value.content[4:]

    context.helper(RuntimeHelper.RESOLVE_COMPONENT)
    context.components.add(tag)
    return code_expression(to_valid_asset_id(tag, "component"))


def build_props(
    node: Element,
    context: TransformContext,
    props: list[Attribute | Directive] | None = None,
) -> PropsBuildResult:
    """Build the props expression for ``node`` (or for ``props``, a subset)."""
    props = node.props if props is None else props
    is_component = node.tag_type == ElementType.COMPONENT
    has_children = bool(node.children)
    result = PropsBuildResult()

    properties: list[Property] = []
    merge_args: list[Any] = []
    has_ref = has_class_binding = has_style_binding = False
    has_hydration_event_binding = has_dynamic_keys = has_vnode_hook = False
    dynamic_prop_names = result.dynamic_prop_names

    def analyze_patch_flag(prop: Property) -> None:
        nonlocal has_ref, has_class_binding, has_style_binding
        nonlocal has_hydration_event_binding, has_dynamic_keys, has_vnode_hook
        key, value = prop.key, prop.value
        if not is_static_exp(key):
            has_dynamic_keys = True
            return
        name = key.content
        is_event = is_handler_key(name)
        if (
            not is_component
            and is_event
            and name.lower() != "on_click"
            and name != "on_update:model_value"
            and name not in RESERVED_PROPS
        ):
            has_hydration_event_binding = True
        if is_event and name in RESERVED_PROPS:
            has_vnode_hook = True
        if isinstance(value, CacheExpression) or (
            isinstance(value, (SimpleExpression, CompoundExpression))
            and get_constant_type(value, context) > ConstantType.NOT_CONSTANT
        ):
            # cached handler or constant value
            return
        if name == "ref":
            has_ref = True
        elif name == "class":
            has_class_binding = True
        elif name == "style":
            has_style_binding = True
        elif name != "key" and name not in dynamic_prop_names:
            dynamic_prop_names.append(name)
        # component class/style bindings are plain props to the child
        if is_component and name in ("class", "style") and name not in dynamic_prop_names:
            dynamic_prop_names.append(name)

    for prop in props:
        if isinstance(prop, Attribute):
            name, value = prop.name, prop.value
            if name == "ref":
                has_ref = True
                if context.scopes.v_for > 0:
                    properties.append(_property("ref_for", code_expression("True", ConstantType.CAN_STRINGIFY)))
            if name == "is" and (node.tag == "component" or (value and value.content.startswith("vue:"))):
                continue
            properties.append(
                Property(
                    key=static_expression(name, prop.loc),
                    value=static_expression(value.content if value else "", value.loc if value else prop.loc),
                    loc=prop.loc,
                )
            )
            continue

        name, arg, exp = prop.name, prop.arg, prop.exp
        is_v_bind, is_v_on = name == "bind", name == "on"
        if name == "slot":
            if not is_component:
                context.on_error(create_compiler_error(ErrorCode.V_SLOT_MISPLACED, prop.loc))
            continue
        if name in ("once", "memo"):
            continue
        if name == "is" or (is_v_bind and is_static_arg_of(arg, "is") and node.tag == "component"):
            continue

        if is_v_bind and is_static_arg_of(arg, "key"):
            result.should_use_block = True
        if is_v_bind and is_static_arg_of(arg, "ref") and context.scopes.v_for > 0:
            properties.append(_property("ref_for", code_expression("True", ConstantType.CAN_STRINGIFY)))

        if arg is None and (is_v_bind or is_v_on):
            # v-bind="obj" / v-on="obj"
            has_dynamic_keys = True
            if exp is not None:
                if properties:
                    merge_args.append(ObjectExpression(properties=dedupe_properties(properties), loc=node.loc))
                    properties = []
                if is_v_bind:
                    merge_args.append(exp)
                else:
                    merge_args.append(
                        CallExpression(callee=context.helper(RuntimeHelper.TO_HANDLERS), arguments=[exp], loc=prop.loc)
                    )
            else:
                code = ErrorCode.V_BIND_NO_EXPRESSION if is_v_bind else ErrorCode.V_ON_NO_EXPRESSION
                context.on_error(create_compiler_error(code, prop.loc))
            continue

        directive_transform = context.directive_transforms.get(name)
        if directive_transform is not None:
            transform_result = directive_transform(prop, node, context)
            for generated in transform_result.props:
                analyze_patch_flag(generated)
            properties.extend(transform_result.props)
            need_runtime = transform_result.need_runtime
            if need_runtime:
                result.directives.append(prop)
                if isinstance(need_runtime, RuntimeHelper):
                    result.runtime_helpers[id(prop)] = need_runtime
        elif name not in BUILTIN_DIRECTIVES:
            # custom directive, applied at runtime
            result.directives.append(prop)
            if has_children:
                result.should_use_block = True

    props_expression: Any = None
    if merge_args:
        if properties:
            merge_args.append(ObjectExpression(properties=dedupe_properties(properties), loc=node.loc))
        if len(merge_args) > 1:
            props_expression = CallExpression(
                callee=context.helper(RuntimeHelper.MERGE_PROPS), arguments=merge_args, loc=node.loc
            )
        else:
            props_expression = merge_args[0]
    elif properties:
        props_expression = ObjectExpression(properties=dedupe_properties(properties), loc=node.loc)

    patch_flag = 0
    if has_dynamic_keys:
        patch_flag |= PatchFlags.FULL_PROPS
    else:
        if has_class_binding and not is_component:
            patch_flag |= PatchFlags.CLASS
        if has_style_binding and not is_component:
            patch_flag |= PatchFlags.STYLE
        if dynamic_prop_names:
            patch_flag |= PatchFlags.PROPS
        if has_hydration_event_binding:
            patch_flag |= PatchFlags.NEED_HYDRATION
    if (
        not result.should_use_block
        and patch_flag in (0, PatchFlags.NEED_HYDRATION)
        and (has_ref or has_vnode_hook or result.directives)
    ):
        patch_flag |= PatchFlags.NEED_PATCH

    result.props = _normalize_props(props_expression, has_style_binding, context)
    result.patch_flag = int(patch_flag)
    return result


def _normalize_props(props_expression: Any, has_style_binding: bool, context: TransformContext) -> Any:
    if props_expression is None or (
        isinstance(props_expression, CallExpression) and props_expression.callee == RuntimeHelper.MERGE_PROPS
    ):
        return props_expression
    if not isinstance(props_expression, ObjectExpression):
        # single v-bind="obj"
        return CallExpression(callee=context.helper(RuntimeHelper.NORMALIZE_PROPS), arguments=[props_expression])

    class_prop = style_prop = None
    has_dynamic_key = False
    for prop in props_expression.properties:
        key = prop.key
        if is_static_exp(key):
            if key.content == "class":
                class_prop = prop
            elif key.content == "style":
                style_prop = prop
        elif not getattr(key, "is_handler_key", False):
            has_dynamic_key = True

    if has_dynamic_key:
        return CallExpression(callee=context.helper(RuntimeHelper.NORMALIZE_PROPS), arguments=[props_expression])
    if class_prop is not None and not is_static_exp(class_prop.value):
        class_prop.value = CallExpression(
            callee=context.helper(RuntimeHelper.NORMALIZE_CLASS), arguments=[class_prop.value]
        )
    if style_prop is not None and (
        has_style_binding
        or (isinstance(style_prop.value, SimpleExpression) and style_prop.value.content.strip().startswith("["))
        or isinstance(style_prop.value, ArrayExpression)
    ):
        style_prop.value = CallExpression(
            callee=context.helper(RuntimeHelper.NORMALIZE_STYLE), arguments=[style_prop.value]
        )
    return props_expression


def dedupe_properties(properties: list[Property]) -> list[Property]:
    """Drop repeated static keys; repeated class, style and handlers merge into a list."""
    known: dict[str, Property] = {}
    deduped: list[Property] = []
    for prop in properties:
        key = prop.key
        if not is_static_exp(key):
            deduped.append(prop)
            continue
        name = key.content
        existing = known.get(name)
        if existing is None:
            known[name] = prop
            deduped.append(prop)
        elif name in ("class", "style") or is_handler_key(name):
            if isinstance(existing.value, ArrayExpression):
                existing.value.elements.append(prop.value)
            else:
                existing.value = ArrayExpression(elements=[existing.value, prop.value], loc=existing.loc)
    return deduped


def build_directive_args(
    directive: Directive,
    context: TransformContext,
    runtime_helpers: dict[int, RuntimeHelper] | None = None,
) -> ArrayExpression:
    """``[directive, value, arg, modifiers]`` for ``with_directives``."""
    args: list[Any] = []
    runtime = (runtime_helpers or {}).get(id(directive))
    if runtime is not None:
        args.append(context.helper_string(runtime))
    else:
        context.helper(RuntimeHelper.RESOLVE_DIRECTIVE)
        context.directives.add(directive.name)
        args.append(to_valid_asset_id(directive.name, "directive"))

    if directive.exp is not None:
        args.append(directive.exp)
    if directive.arg is not None:
        if directive.exp is None:
            args.append("None")
        args.append(directive.arg)
    if directive.modifiers:
        if directive.arg is None:
            if directive.exp is None:
                args.append("None")
            args.append("None")
        true = code_expression("True", ConstantType.CAN_STRINGIFY, directive.loc)
        args.append(
            ObjectExpression(
                properties=[Property(key=static_expression(m), value=true) for m in directive.modifiers],
                loc=directive.loc,
            )
        )
    return ArrayExpression(elements=args, loc=directive.loc)


def _property(key: str, value: Any) -> Property:
    return Property(key=static_expression(key), value=value)
