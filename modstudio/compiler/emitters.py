"""
Node Emitters - dispatch table mapping node type to script emission.

Every emitter has the same contract:

    emit(node, inputs, scope) -> Emission

`inputs` maps each data input port name to an already-resolved expression.
`scope` is supplied by the generator and offers new_var(prefix=None),
is_connected(port_name), has_output(port_name) and exec_outputs().

An Emission carries `items` (script lines plus structured placeholders the
generator expands) and `outputs` (output port name -> expression). Adding a
node type means adding a table entry here; the generator's traversal never
switches on node type.
"""

import re
from typing import Dict, List, Any, Callable, Optional
from pydantic import BaseModel, Field

from modstudio.compiler.graph import NodeInstance, ValueType
from modstudio.compiler.literals import format_literal


class ExecFollow(BaseModel):
    """Continue with the chain attached to an exec output, at the same level."""
    port: str


class ExecBlock(BaseModel):
    """Emit the chain attached to an exec output as an indented block with its own scope."""
    port: str
    bindings: Dict[str, str] = Field(default_factory=dict)  # output port name -> expression
    tail: List[str] = Field(default_factory=list)


class ExecThread(BaseModel):
    """Emit the chain attached to an exec output as a separate thread function."""
    port: str
    name: str


class Emission(BaseModel):
    items: List[Any] = Field(default_factory=list)
    outputs: Dict[str, str] = Field(default_factory=dict)


Emitter = Callable[[NodeInstance, Dict[str, str], Any], Emission]


# ── Emitter Builders ──────────────────────────────────────────────────────────

def statement(*templates: str, follow: str = "then") -> Emitter:
    """Lines formatted from the resolved inputs, then continue on `follow`."""
    def emit(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
        lines = [t.format_map(inputs) for t in templates]
        return Emission(items=lines + [ExecFollow(port=follow)])
    return emit


def bound_statement(template: str, output: str, follow: str = "then") -> Emitter:
    """A statement whose result is kept in a fresh local exposed on `output`."""
    def emit(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
        var = scope.new_var()
        return Emission(
            items=[f"local {var} = {template.format_map(inputs)}", ExecFollow(port=follow)],
            outputs={output: var},
        )
    return emit


def expression(template: str, output: str = "result") -> Emitter:
    def emit(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
        return Emission(outputs={output: template.format_map(inputs)})
    return emit


def constant(value_type: ValueType, key: str = "value", output: str = "value") -> Emitter:
    def emit(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
        return Emission(outputs={output: format_literal(node.data.get(key), value_type.value)})
    return emit


# ── Control Flow ──────────────────────────────────────────────────────────────

def emit_sequence(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    return Emission(items=[ExecFollow(port=name) for name in scope.exec_outputs()])


def emit_branch(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    items: List[Any] = [f"if ({inputs['condition']})", "{", ExecBlock(port="true"), "}"]
    if scope.is_connected("false"):
        items += ["else", "{", ExecBlock(port="false"), "}"]
    return Emission(items=items)


def emit_loop_for(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    i = scope.new_var("i")
    header = f"for (int {i} = {inputs['start']}; {i} < {inputs['end']}; {i} += {inputs['step']})"
    return Emission(items=[
        header, "{", ExecBlock(port="body", bindings={"index": i}), "}",
        ExecFollow(port="completed"),
    ])


def emit_loop_foreach(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    idx = scope.new_var("idx")
    elem = scope.new_var("elem")
    return Emission(items=[
        f"foreach (int {idx}, var {elem} in {inputs['array']})",
        "{", ExecBlock(port="body", bindings={"element": elem, "index": idx}), "}",
        ExecFollow(port="completed"),
    ])


def emit_loop_while(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    return Emission(items=[
        f"while ({inputs['condition']})", "{", ExecBlock(port="body"), "}",
        ExecFollow(port="completed"),
    ])


def switch_emitter(case_type: ValueType) -> Emitter:
    """Cases come from the payload's `cases` list, paired with case0..caseN outputs."""
    def emit(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
        items: List[Any] = [f"switch ({inputs['value']})", "{"]
        for i, case in enumerate(node.data.get("cases") or []):
            port = f"case{i}"
            if not scope.has_output(port):
                break
            items += [f"case {format_literal(case, case_type.value)}:", ExecBlock(port=port, tail=["break"])]
        if scope.is_connected("default"):
            items += ["default:", ExecBlock(port="default", tail=["break"])]
        items += ["}", ExecFollow(port="completed")]
        return Emission(items=items)
    return emit


def thread_function_name(node_id: str) -> str:
    return "__Thread_" + re.sub(r"[^a-zA-Z0-9]", "_", node_id)


def emit_thread(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    function = inputs.get("function", "null")
    if not scope.is_connected("body") and function != "null":
        return Emission(items=[f"thread {function}()", ExecFollow(port="then")])
    return Emission(items=[
        ExecThread(port="body", name=thread_function_name(node.id)),
        ExecFollow(port="then"),
    ])


def emit_return(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    return Emission(items=["return"])


def emit_array_append(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    return Emission(
        items=[f"{inputs['array']}.append({inputs['element']})", ExecFollow(port="then")],
        outputs={"array": inputs["array"]},
    )


def emit_reroute(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    return Emission(outputs={"value": inputs["value"]})


MOD_WEAPON_FIELDS = (
    "className", "name", "hudIcon", "weaponType", "pickupSound1p", "pickupSound3p", "tier",
    "baseMods", "supportedAttachments", "lowWeaponChance", "medWeaponChance", "highWeaponChance",
)


def emit_register_mod_weapon(node: NodeInstance, inputs: Dict[str, str], scope) -> Emission:
    data = scope.new_var()
    lines = [f"CustomWeaponData {data}"]
    lines += [f"{data}.{field} = {inputs[field]}" for field in MOD_WEAPON_FIELDS]
    lines.append(f"RegisterModWeapon({data}, {inputs['registerInLoot']})")
    return Emission(items=lines + [ExecFollow(port="then")])


# ══════════════════════════════════════════════════════════════════════════════
# Dispatch Table
# ══════════════════════════════════════════════════════════════════════════════

EMITTERS: Dict[str, Emitter] = {
    # Core flow
    "sequence": emit_sequence,
    "branch": emit_branch,
    "loop-for": emit_loop_for,
    "loop-foreach": emit_loop_foreach,
    "loop-while": emit_loop_while,
    "switch": switch_emitter(ValueType.INT),
    "switch-case": switch_emitter(ValueType.STRING),
    "reroute-exec": emit_sequence,
    "call-function": statement("{function}()"),
    "return": emit_return,

    # Timing / threads / signals
    "wait": statement("wait {duration}"),
    "delay": statement("wait {duration}"),
    "thread": emit_thread,
    "register-signal": statement("RegisterSignal({signal})"),
    "signal": statement("Signal({entity}, {signal})"),
    "wait-signal": statement("WaitSignal({entity}, {signal})"),
    "end-signal": statement("EndSignal({entity}, {signal})"),

    # Entity
    "get-origin": expression("{entity}.GetOrigin()", "origin"),
    "set-origin": statement("{entity}.SetOrigin({origin})"),
    "get-velocity": expression("{entity}.GetVelocity()", "velocity"),
    "set-velocity": statement("{entity}.SetVelocity({velocity})"),
    "get-health": expression("{entity}.GetHealth()", "health"),
    "set-health": statement("{entity}.SetHealth({health})"),
    "get-owner": expression("{entity}.GetOwner()", "owner"),
    "is-valid": expression("IsValid({entity})", "valid"),
    "is-alive": expression("IsAlive({entity})", "alive"),
    "kill-entity": statement("{entity}.Die()"),
    "entity-take-damage": statement(
        "{entity}.TakeDamage({damage}, {attacker}, {inflictor}, {{ damageSourceId = {damageSourceId} }})"
    ),
    "radius-damage": statement("RadiusDamage({origin}, {attacker}, {inflictor}, {damage}, {radius})"),
    "spawn-prop": bound_statement("CreatePropDynamic({model}, {origin}, {angles})", "prop"),
    "get-local-client-player": expression("GetLocalClientPlayer()", "player"),
    "get-localplayer-view": expression("GetLocalViewPlayer()", "player"),
    "get-all-players": expression("GetPlayerArray()", "players"),

    # Weapons
    "get-active-weapon": expression("{player}.GetActiveWeapon(eActiveInventorySlot.mainHand)", "weapon"),
    "get-weapon-owner": expression("{weapon}.GetWeaponOwner()", "owner"),
    "give-weapon": statement("{player}.GiveWeapon({weapon}, WEAPON_INVENTORY_SLOT_ANY)"),
    "precache-weapon": statement("PrecacheWeapon({weaponClass})"),
    "weapon-has-mod": expression("{weapon}.HasMod({modName})", "hasMod"),
    "weapon-add-mod": statement("{weapon}.AddMod({modName})"),
    "fire-weapon-bullet": statement("{weapon}.FireWeaponBullet()"),
    "give-weapon-action": statement("{player}.GiveWeapon({weapon}, WEAPON_INVENTORY_SLOT_ANY)"),

    # Mod registration
    "register-mod-weapon": emit_register_mod_weapon,
    "register-custom-damage": statement("RegisterWeaponDamageSource({weaponClass}, {displayName})"),

    # Audio / particles
    "emit-sound-on-entity": statement("EmitSoundOnEntity({entity}, {sound})"),
    "emit-sound": statement("EmitSoundOnEntity({entity}, {sound})"),
    "play-sound": statement("EmitUISound({sound})"),
    "start-particle-on-entity": bound_statement(
        "StartParticleEffectOnEntity({entity}, GetParticleSystemIndex({effect}), "
        "FX_PATTACH_POINT_FOLLOW, {entity}.LookupAttachment({attachment}))",
        "fx",
    ),

    # Math
    "math-add": expression("({a} + {b})"),
    "math-subtract": expression("({a} - {b})"),
    "math-multiply": expression("({a} * {b})"),
    "math-divide": expression("({a} / {b})"),
    "math-random-float": expression("RandomFloatRange({min}, {max})"),
    "math-random-int": expression("RandomIntRange({min}, {max})"),
    "vector-create": expression("<{x}, {y}, {z}>", "vector"),
    "vector-add": expression("({a} + {b})"),
    "vector-normalize": expression("Normalize({vector})"),

    # Logic
    "compare-equal": expression("({a} == {b})"),
    "compare-not-equal": expression("({a} != {b})"),
    "compare-greater": expression("({a} > {b})"),
    "compare-less": expression("({a} < {b})"),
    "logic-and": expression("({a} && {b})"),
    "logic-or": expression("({a} || {b})"),
    "logic-not": expression("(!{a})"),

    # Data
    "const-string": constant(ValueType.STRING),
    "const-int": constant(ValueType.INT),
    "const-float": constant(ValueType.FLOAT),
    "const-bool": constant(ValueType.BOOL),
    "const-vector": constant(ValueType.VECTOR),
    "const-asset": constant(ValueType.ASSET),
    "string": constant(ValueType.STRING),
    "int": constant(ValueType.INT),
    "float": constant(ValueType.FLOAT),
    "bool": constant(ValueType.BOOL),
    "function-ref": constant(ValueType.FUNCTION, key="functionName", output="function"),
    "reroute": emit_reroute,

    # Arrays
    "array-create": expression("[]", "array"),
    "array-append": emit_array_append,
    "array-get": expression("{array}[{index}]", "element"),
    "array-length": expression("{array}.len()", "length"),

    # Utilities
    "print": statement("print({message})"),
    "add-callback": statement("{callbackType}({function})"),

    # Gamemode
    "gamemode-get-current": expression("GameRules_GetGameMode()", "mode"),
    "gamemode-set-score-limit": statement("GameRules_SetScoreLimit({limit})"),

    # UI
    "ui-open-menu": statement("AdvanceMenu(GetMenu({menu}))"),
    "ui-close-menu": statement("CloseActiveMenu()"),
    "ui-set-text": statement("Hud_SetText({element}, {text})"),
}


def get_emitter(node_type: str) -> Optional[Emitter]:
    return EMITTERS.get(node_type)
