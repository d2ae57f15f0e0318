"""
Node Catalog.
Static registry of every node type the palette offers: ports, default
payload, run-context requirements and evaluation class. Loaded once at
import time and never mutated.
"""

import copy
from typing import Optional, Dict, List, Any, Tuple

from modstudio.compiler.errors import GraphError
from modstudio.compiler.graph import (
    NodeDefinition, NodeInstance, Port, PortTemplate,
    PortKind, ValueType, RunContext, Purity,
)


def _exec(name: str, label: str) -> PortTemplate:
    return PortTemplate(name=name, label=label, kind=PortKind.EXEC)


def _data(
    name: str,
    label: str,
    value_type: ValueType,
    data_key: Optional[str] = None,
    script_type: Optional[str] = None,
) -> PortTemplate:
    return PortTemplate(
        name=name, label=label, kind=PortKind.DATA,
        value_type=value_type, data_key=data_key, script_type=script_type,
    )


EXEC_IN = _exec("exec", "In")
THEN = _exec("then", "Out")

V = ValueType


def _statement(node_type: str, category: str, label: str, inputs: List[PortTemplate], **kwargs) -> NodeDefinition:
    """A plain exec-in / exec-out action node."""
    outputs = [THEN] + kwargs.pop("extra_outputs", [])
    return NodeDefinition(
        node_type=node_type, category=category, label=label,
        inputs=[EXEC_IN] + inputs, outputs=outputs, purity=Purity.IMPURE, **kwargs,
    )


def _getter(node_type: str, category: str, label: str, inputs: List[PortTemplate],
            output: PortTemplate, **kwargs) -> NodeDefinition:
    """A data-only node with no side effects."""
    return NodeDefinition(
        node_type=node_type, category=category, label=label,
        inputs=inputs, outputs=[output], purity=kwargs.pop("purity", Purity.PURE), **kwargs,
    )


def _constant(node_type: str, label: str, value_type: ValueType, default: Any) -> NodeDefinition:
    return NodeDefinition(
        node_type=node_type, category="data", label=label,
        description=f"{value_type.value} literal",
        outputs=[_data("value", "Value", value_type)],
        default_data={"value": default}, purity=Purity.CONSTANT,
    )


# ── Built-in Node Catalog ─────────────────────────────────────────────────────

BUILTIN_NODES: List[NodeDefinition] = [
    # Init + events (entry points)
    NodeDefinition(
        node_type="init-server", category="core-flow", label="Init: Server",
        description="Server initialization (#if SERVER)",
        outputs=[THEN], default_data={"functionName": ""}, context=[RunContext.SERVER],
    ),
    NodeDefinition(
        node_type="init-client", category="core-flow", label="Init: Client",
        description="Client initialization (#if CLIENT)",
        outputs=[THEN], default_data={"functionName": ""}, context=[RunContext.CLIENT],
    ),
    NodeDefinition(
        node_type="init-ui", category="core-flow", label="Init: UI",
        description="UI initialization (#if UI)",
        outputs=[THEN], default_data={"functionName": ""}, context=[RunContext.UI],
    ),
    NodeDefinition(
        node_type="event", category="events", label="Event: Custom",
        description="Custom event/callback function",
        outputs=[THEN], default_data={"functionName": "CustomEvent"},
    ),
    NodeDefinition(
        node_type="on-weapon-activate", category="events", label="OnWeaponActivate",
        description="Called when weapon is activated",
        outputs=[THEN, _data("weapon", "Weapon", V.ENTITY, script_type="entity")],
        default_data={"functionName": "OnWeaponActivate_Custom"},
    ),
    NodeDefinition(
        node_type="on-weapon-primary-attack", category="events", label="OnWeaponPrimaryAttack",
        description="Called when weapon fires; returns ammo consumed",
        outputs=[
            THEN,
            _data("weapon", "Weapon", V.ENTITY, script_type="entity"),
            _data("attackParams", "AttackParams", V.STRUCT, script_type="WeaponPrimaryAttackParams"),
        ],
        default_data={"functionName": "OnWeaponPrimaryAttack_Custom"},
        return_type="var",
    ),
    NodeDefinition(
        node_type="on-projectile-collision", category="events", label="OnProjectileCollision",
        description="Called when projectile hits something",
        outputs=[
            THEN,
            _data("projectile", "Projectile", V.ENTITY, script_type="entity"),
            _data("pos", "Position", V.VECTOR, script_type="vector"),
            _data("normal", "Normal", V.VECTOR, script_type="vector"),
            _data("hitEnt", "HitEnt", V.ENTITY, script_type="entity"),
            _data("hitbox", "Hitbox", V.INT, script_type="int"),
            _data("isCritical", "IsCritical", V.BOOL, script_type="bool"),
        ],
        default_data={"functionName": "OnProjectileCollision_Custom"},
    ),
    NodeDefinition(
        node_type="on-player-respawned", category="events", label="OnPlayerRespawned",
        description="Called when a player respawns",
        outputs=[THEN, _data("player", "Player", V.ENTITY, script_type="entity")],
        default_data={"functionName": "OnPlayerRespawned_Custom"}, server_only=True,
    ),
    NodeDefinition(
        node_type="on-client-connected", category="events", label="OnClientConnected",
        description="Called when a client finishes connecting",
        outputs=[THEN, _data("player", "Player", V.ENTITY, script_type="entity")],
        default_data={"functionName": "OnClientConnected_Custom"}, context=[RunContext.SERVER],
    ),

    # Core flow
    NodeDefinition(
        node_type="sequence", category="core-flow", label="Flow: Sequence",
        description="Execute outputs in order",
        inputs=[EXEC_IN],
        outputs=[_exec("then0", "Out 1"), _exec("then1", "Out 2"), _exec("then2", "Out 3")],
    ),
    NodeDefinition(
        node_type="branch", category="core-flow", label="Branch",
        description="Conditional branch based on boolean",
        inputs=[EXEC_IN, _data("condition", "Condition", V.BOOL)],
        outputs=[_exec("true", "True"), _exec("false", "False")],
        default_data={"condition": True},
    ),
    NodeDefinition(
        node_type="loop-for", category="core-flow", label="For Loop",
        description="Counted loop from start to end",
        inputs=[EXEC_IN, _data("start", "Start", V.INT), _data("end", "End", V.INT), _data("step", "Step", V.INT)],
        outputs=[_exec("body", "Loop Body"), _data("index", "Index", V.INT), _exec("completed", "Completed")],
        default_data={"start": 0, "end": 10, "step": 1},
    ),
    NodeDefinition(
        node_type="loop-foreach", category="core-flow", label="For Each",
        description="Iterate an array",
        inputs=[EXEC_IN, _data("array", "Array", V.ARRAY)],
        outputs=[
            _exec("body", "Loop Body"), _data("element", "Element", V.ANY),
            _data("index", "Index", V.INT), _exec("completed", "Completed"),
        ],
    ),
    NodeDefinition(
        node_type="loop-while", category="core-flow", label="While Loop",
        description="Loop while condition holds",
        inputs=[EXEC_IN, _data("condition", "Condition", V.BOOL)],
        outputs=[_exec("body", "Loop Body"), _exec("completed", "Completed")],
        default_data={"condition": False},
    ),
    NodeDefinition(
        node_type="switch", category="core-flow", label="Switch on Int",
        description="Jump to the output matching an integer value",
        inputs=[EXEC_IN, _data("value", "Value", V.INT)],
        outputs=[
            _exec("case0", "Case 1"), _exec("case1", "Case 2"), _exec("case2", "Case 3"),
            _exec("default", "Default"), _exec("completed", "Completed"),
        ],
        default_data={"value": 0, "cases": [0, 1, 2]},
    ),
    NodeDefinition(
        node_type="switch-case", category="core-flow", label="Switch on String",
        description="Jump to the output matching a string value",
        inputs=[EXEC_IN, _data("value", "Value", V.STRING)],
        outputs=[
            _exec("case0", "Case 1"), _exec("case1", "Case 2"), _exec("case2", "Case 3"),
            _exec("default", "Default"), _exec("completed", "Completed"),
        ],
        default_data={"value": "", "cases": ["a", "b", "c"]},
    ),
    NodeDefinition(
        node_type="reroute-exec", category="core-flow", label="Reroute (Exec)",
        inputs=[EXEC_IN], outputs=[THEN],
    ),
    _statement("call-function", "core-flow", "Call Function",
               [_data("function", "Function", V.FUNCTION, data_key="functionName")],
               default_data={"functionName": "MyFunction"}),
    NodeDefinition(
        node_type="return", category="core-flow", label="Return",
        inputs=[EXEC_IN], purity=Purity.IMPURE,
    ),

    # Timing / threads / signals
    _statement("wait", "timing", "Wait", [_data("duration", "Duration", V.FLOAT)],
               default_data={"duration": 1.0}),
    _statement("delay", "timing", "Delay", [_data("duration", "Duration", V.FLOAT)],
               default_data={"duration": 1.0}),
    NodeDefinition(
        node_type="thread", category="timing", label="Thread (Async)",
        description="Run the body (or a named function) in a new thread and continue immediately",
        inputs=[EXEC_IN, _data("function", "Function", V.FUNCTION, data_key="functionName")],
        outputs=[_exec("body", "Thread Body"), THEN],
        default_data={"functionName": ""},
    ),
    _statement("register-signal", "timing", "RegisterSignal",
               [_data("signal", "Signal", V.STRING)], default_data={"signal": "OnCustomSignal"}),
    _statement("signal", "timing", "Signal",
               [_data("entity", "Entity", V.ENTITY), _data("signal", "Signal", V.STRING)],
               default_data={"signal": "OnCustomSignal"}),
    _statement("wait-signal", "timing", "WaitSignal",
               [_data("entity", "Entity", V.ENTITY), _data("signal", "Signal", V.STRING)],
               default_data={"signal": "OnCustomSignal"}),
    _statement("end-signal", "timing", "EndSignal",
               [_data("entity", "Entity", V.ENTITY), _data("signal", "Signal", V.STRING)],
               default_data={"signal": "OnDestroy"}),

    # Entity
    _getter("get-origin", "entity", "GetOrigin", [_data("entity", "Entity", V.ENTITY)],
            _data("origin", "Origin", V.VECTOR), var_prefix="origin"),
    _statement("set-origin", "entity", "SetOrigin",
               [_data("entity", "Entity", V.ENTITY), _data("origin", "Origin", V.VECTOR)]),
    _getter("get-velocity", "entity", "GetVelocity", [_data("entity", "Entity", V.ENTITY)],
            _data("velocity", "Velocity", V.VECTOR), var_prefix="velocity"),
    _statement("set-velocity", "entity", "SetVelocity",
               [_data("entity", "Entity", V.ENTITY), _data("velocity", "Velocity", V.VECTOR)]),
    _getter("get-health", "entity", "GetHealth", [_data("entity", "Entity", V.ENTITY)],
            _data("health", "Health", V.INT), var_prefix="health"),
    _statement("set-health", "entity", "SetHealth",
               [_data("entity", "Entity", V.ENTITY), _data("health", "Health", V.INT)],
               default_data={"health": 100}, server_only=True),
    _getter("get-owner", "entity", "GetOwner", [_data("entity", "Entity", V.ENTITY)],
            _data("owner", "Owner", V.ENTITY), var_prefix="owner"),
    _getter("is-valid", "entity", "IsValid", [_data("entity", "Entity", V.ENTITY)],
            _data("valid", "Valid", V.BOOL), var_prefix="isValid"),
    _getter("is-alive", "entity", "IsAlive", [_data("entity", "Entity", V.ENTITY)],
            _data("alive", "Alive", V.BOOL), var_prefix="isAlive"),
    _statement("kill-entity", "entity", "Die", [_data("entity", "Entity", V.ENTITY)], server_only=True),
    _statement("entity-take-damage", "entity", "TakeDamage", [
        _data("entity", "Entity", V.ENTITY), _data("attacker", "Attacker", V.ENTITY),
        _data("inflictor", "Inflictor", V.ENTITY), _data("damage", "Damage", V.FLOAT),
        _data("damageSourceId", "Damage Source", V.FUNCTION),
    ], default_data={"damage": 10.0, "damageSourceId": "eDamageSourceId.invalid"}, server_only=True),
    _statement("radius-damage", "entity", "RadiusDamage", [
        _data("origin", "Origin", V.VECTOR), _data("attacker", "Attacker", V.ENTITY),
        _data("inflictor", "Inflictor", V.ENTITY), _data("damage", "Damage", V.FLOAT),
        _data("radius", "Radius", V.FLOAT),
    ], default_data={"damage": 50.0, "radius": 256.0}, context=[RunContext.SERVER]),
    _statement("spawn-prop", "entity", "Spawn Prop", [
        _data("model", "Model", V.ASSET), _data("origin", "Origin", V.VECTOR),
        _data("angles", "Angles", V.VECTOR),
    ], extra_outputs=[_data("prop", "Prop", V.ENTITY)],
        default_data={"model": "$\"mdl/dev/empty_model.rmdl\""}, var_prefix="prop"),
    _getter("get-local-client-player", "entity", "GetLocalClientPlayer", [],
            _data("player", "Player", V.ENTITY), context=[RunContext.CLIENT], var_prefix="player"),
    _getter("get-localplayer-view", "entity", "GetLocalViewPlayer", [],
            _data("player", "Player", V.ENTITY), var_prefix="viewPlayer"),
    _getter("get-all-players", "entity", "GetPlayerArray", [],
            _data("players", "Players", V.ARRAY), var_prefix="players"),

    # Weapons
    _getter("get-active-weapon", "weapons", "GetActiveWeapon", [_data("player", "Player", V.ENTITY)],
            _data("weapon", "Weapon", V.ENTITY), var_prefix="weapon"),
    _getter("get-weapon-owner", "weapons", "GetWeaponOwner", [_data("weapon", "Weapon", V.ENTITY)],
            _data("owner", "Owner", V.ENTITY), var_prefix="owner"),
    _statement("give-weapon", "weapons", "GiveWeapon",
               [_data("player", "Player", V.ENTITY), _data("weapon", "Weapon", V.STRING, data_key="weaponName")],
               default_data={"weaponName": "mp_weapon_r97"}, server_only=True),
    _statement("precache-weapon", "weapons", "PrecacheWeapon",
               [_data("weaponClass", "WeaponClass", V.STRING)],
               default_data={"weaponClass": "mp_weapon_custom"}),
    _getter("weapon-has-mod", "weapons", "Weapon.HasMod",
            [_data("weapon", "Weapon", V.ENTITY), _data("modName", "ModName", V.STRING)],
            _data("hasMod", "HasMod", V.BOOL), default_data={"modName": "mod_name"}, var_prefix="hasMod"),
    _statement("weapon-add-mod", "weapons", "Weapon.AddMod",
               [_data("weapon", "Weapon", V.ENTITY), _data("modName", "ModName", V.STRING)],
               default_data={"modName": "mod_name"}),
    _statement("fire-weapon-bullet", "weapons", "FireWeaponBullet", [_data("weapon", "Weapon", V.ENTITY)]),
    _statement("give-weapon-action", "actions", "Action: GiveWeapon",
               [_data("player", "Player", V.ENTITY), _data("weapon", "Weapon", V.STRING, data_key="weaponName")],
               default_data={"weaponName": "mp_weapon_r97"}, server_only=True),

    # Mod registration
    _statement("register-mod-weapon", "mods", "RegisterModWeapon", [
        _data("className", "ClassName", V.STRING), _data("name", "Name", V.STRING),
        _data("hudIcon", "HudIcon", V.ASSET), _data("weaponType", "WeaponType", V.STRING),
        _data("pickupSound1p", "PickupSound1p", V.STRING), _data("pickupSound3p", "PickupSound3p", V.STRING),
        _data("tier", "Tier", V.INT), _data("baseMods", "BaseMods", V.ARRAY),
        _data("supportedAttachments", "SupportedAttachments", V.ARRAY),
        _data("lowWeaponChance", "LowWeaponChance", V.FLOAT),
        _data("medWeaponChance", "MedWeaponChance", V.FLOAT),
        _data("highWeaponChance", "HighWeaponChance", V.FLOAT),
        _data("registerInLoot", "RegisterInLoot", V.BOOL),
    ], default_data={
        "className": "mp_weapon_custom", "name": "Custom Weapon", "weaponType": "smg",
        "tier": 1, "baseMods": [], "supportedAttachments": [], "registerInLoot": False,
    }, var_prefix="weaponData"),
    _statement("register-custom-damage", "mods", "RegisterCustomWeaponDamageDef",
               [_data("weaponClass", "WeaponClass", V.STRING), _data("displayName", "DisplayName", V.STRING)],
               default_data={"weaponClass": "mp_weapon_custom", "displayName": "Custom Weapon"}),

    # Audio / particles
    _statement("emit-sound-on-entity", "audio", "EmitSoundOnEntity",
               [_data("entity", "Entity", V.ENTITY), _data("sound", "Sound", V.STRING, data_key="soundName")],
               default_data={"soundName": "sound_name"}),
    _statement("emit-sound", "audio", "EmitSound",
               [_data("entity", "Entity", V.ENTITY), _data("sound", "Sound", V.STRING, data_key="soundName")],
               default_data={"soundName": "sound_name"}),
    _statement("play-sound", "audio", "Play UI Sound",
               [_data("sound", "Sound", V.STRING, data_key="soundName")],
               default_data={"soundName": "sound_name"}, client_only=True),
    _statement("start-particle-on-entity", "particles", "StartParticleEffectOnEntity", [
        _data("entity", "Entity", V.ENTITY), _data("effect", "Effect", V.ASSET),
        _data("attachment", "Attachment", V.STRING),
    ], extra_outputs=[_data("fx", "FX Handle", V.INT)],
        default_data={"effect": "$\"P_impact_exp_small\"", "attachment": "muzzle_flash"}, var_prefix="fxHandle"),

    # Math
    _getter("math-add", "math", "Add", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.NUMBER), var_prefix="sum"),
    _getter("math-subtract", "math", "Subtract", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.NUMBER), var_prefix="diff"),
    _getter("math-multiply", "math", "Multiply", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.NUMBER), var_prefix="product"),
    _getter("math-divide", "math", "Divide", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.NUMBER), default_data={"b": 1}, var_prefix="quotient"),
    _getter("math-random-float", "math", "RandomFloatRange",
            [_data("min", "Min", V.FLOAT), _data("max", "Max", V.FLOAT)],
            _data("result", "Result", V.FLOAT), default_data={"min": 0.0, "max": 1.0},
            purity=Purity.IMPURE, var_prefix="rand"),
    _getter("math-random-int", "math", "RandomIntRange",
            [_data("min", "Min", V.INT), _data("max", "Max", V.INT)],
            _data("result", "Result", V.INT), default_data={"min": 0, "max": 10},
            purity=Purity.IMPURE, var_prefix="rand"),
    _getter("vector-create", "math", "Make Vector",
            [_data("x", "X", V.FLOAT), _data("y", "Y", V.FLOAT), _data("z", "Z", V.FLOAT)],
            _data("vector", "Vector", V.VECTOR), var_prefix="vec"),
    _getter("vector-add", "math", "Vector Add", [_data("a", "A", V.VECTOR), _data("b", "B", V.VECTOR)],
            _data("result", "Result", V.VECTOR), var_prefix="vec"),
    _getter("vector-normalize", "math", "Normalize", [_data("vector", "Vector", V.VECTOR)],
            _data("result", "Result", V.VECTOR), var_prefix="normalized"),

    # Logic
    _getter("compare-equal", "logic", "Equal", [_data("a", "A", V.ANY), _data("b", "B", V.ANY)],
            _data("result", "Result", V.BOOL), var_prefix="isEqual"),
    _getter("compare-not-equal", "logic", "Not Equal", [_data("a", "A", V.ANY), _data("b", "B", V.ANY)],
            _data("result", "Result", V.BOOL), var_prefix="notEqual"),
    _getter("compare-greater", "logic", "Greater", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.BOOL), var_prefix="isGreater"),
    _getter("compare-less", "logic", "Less", [_data("a", "A", V.NUMBER), _data("b", "B", V.NUMBER)],
            _data("result", "Result", V.BOOL), var_prefix="isLess"),
    _getter("logic-and", "logic", "And", [_data("a", "A", V.BOOL), _data("b", "B", V.BOOL)],
            _data("result", "Result", V.BOOL), var_prefix="both"),
    _getter("logic-or", "logic", "Or", [_data("a", "A", V.BOOL), _data("b", "B", V.BOOL)],
            _data("result", "Result", V.BOOL), var_prefix="either"),
    _getter("logic-not", "logic", "Not", [_data("a", "A", V.BOOL)],
            _data("result", "Result", V.BOOL), var_prefix="negated"),

    # Data
    _constant("const-string", "String", V.STRING, ""),
    _constant("const-int", "Int", V.INT, 0),
    _constant("const-float", "Float", V.FLOAT, 0.0),
    _constant("const-bool", "Bool", V.BOOL, False),
    _constant("const-vector", "Vector", V.VECTOR, {"x": 0, "y": 0, "z": 0}),
    _constant("const-asset", "Asset", V.ASSET, "$\"\""),
    # Older editor spellings of the literal nodes
    _constant("string", "Data: String", V.STRING, ""),
    _constant("int", "Int", V.INT, 0),
    _constant("float", "Float", V.FLOAT, 0.0),
    _constant("bool", "Bool", V.BOOL, True),
    NodeDefinition(
        node_type="function-ref", category="data", label="Function Reference",
        outputs=[_data("function", "Function", V.FUNCTION, data_key="functionName")],
        default_data={"functionName": "MyFunction"}, purity=Purity.CONSTANT,
    ),
    NodeDefinition(
        node_type="reroute", category="data", label="Reroute",
        inputs=[_data("value", "In", V.ANY)], outputs=[_data("value", "Out", V.ANY)],
        purity=Purity.CONSTANT,
    ),

    # Arrays
    _getter("array-create", "arrays", "Make Array", [], _data("array", "Array", V.ARRAY),
            purity=Purity.IMPURE, var_prefix="arr"),
    _statement("array-append", "arrays", "Array Append",
               [_data("array", "Array", V.ARRAY), _data("element", "Element", V.ANY)],
               extra_outputs=[_data("array", "Array", V.ARRAY)]),
    _getter("array-get", "arrays", "Array Get", [_data("array", "Array", V.ARRAY), _data("index", "Index", V.INT)],
            _data("element", "Element", V.ANY), var_prefix="elem"),
    _getter("array-length", "arrays", "Array Length", [_data("array", "Array", V.ARRAY)],
            _data("length", "Length", V.INT), var_prefix="len"),

    # Utilities
    _statement("print", "utilities", "Print", [_data("message", "Message", V.STRING)],
               default_data={"message": ""}),
    _statement("add-callback", "utilities", "AddCallback", [
        _data("callbackType", "CallbackType", V.FUNCTION),
        _data("function", "Function", V.FUNCTION, data_key="functionName"),
    ], default_data={"callbackType": "AddCallback_OnClientConnected", "functionName": "MyCallback"}),

    # Gamemode
    _getter("gamemode-get-current", "gamemode", "GameRules_GetGameMode", [],
            _data("mode", "Mode", V.STRING), var_prefix="gameMode"),
    _statement("gamemode-set-score-limit", "gamemode", "SetScoreLimit",
               [_data("limit", "Limit", V.INT)], default_data={"limit": 50}),

    # UI
    _statement("ui-open-menu", "ui", "Open Menu", [_data("menu", "Menu", V.STRING, data_key="menuName")],
               default_data={"menuName": "CustomMenu"}),
    _statement("ui-close-menu", "ui", "Close Active Menu", []),
    _statement("ui-set-text", "ui", "Hud_SetText",
               [_data("element", "Element", V.ENTITY), _data("text", "Text", V.STRING)]),
]


class NodeCatalog:
    """
    Lookup over the built-in node definitions.
    Definitions are frozen; instances created from them get their own payload copy.
    """

    def __init__(self, definitions: Optional[List[NodeDefinition]] = None):
        self._definitions: Dict[str, NodeDefinition] = {}
        for definition in definitions if definitions is not None else BUILTIN_NODES:
            if definition.node_type in self._definitions:
                raise ValueError(f"Duplicate node type in catalog: {definition.node_type}")
            self._definitions[definition.node_type] = definition

    def get(self, node_type: str) -> Optional[NodeDefinition]:
        return self._definitions.get(node_type)

    def require(self, node_type: str, node_id: Optional[str] = None) -> NodeDefinition:
        definition = self._definitions.get(node_type)
        if definition is None:
            raise GraphError(f"Unknown node type '{node_type}'", node_id=node_id)
        return definition

    def list_all(self, category: Optional[str] = None) -> List[NodeDefinition]:
        definitions = list(self._definitions.values())
        if category:
            definitions = [d for d in definitions if d.category == category]
        return definitions

    def by_category(self) -> Dict[str, List[NodeDefinition]]:
        grouped: Dict[str, List[NodeDefinition]] = {}
        for definition in self._definitions.values():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    @staticmethod
    def instantiate_ports(definition: NodeDefinition) -> Tuple[List[Port], List[Port]]:
        inputs = [
            Port(id=f"input_{i}", label=t.label, kind=t.kind,
                 value_type=t.value_type.value if t.value_type else None, is_input=True)
            for i, t in enumerate(definition.inputs)
        ]
        outputs = [
            Port(id=f"output_{i}", label=t.label, kind=t.kind,
                 value_type=t.value_type.value if t.value_type else None, is_input=False)
            for i, t in enumerate(definition.outputs)
        ]
        return inputs, outputs

    def instantiate(
        self,
        node_type: str,
        node_id: str,
        data: Optional[Dict[str, Any]] = None,
        position: Optional[Dict[str, float]] = None,
    ) -> NodeInstance:
        """Create a node instance with payload seeded from the definition defaults."""
        definition = self.require(node_type, node_id=node_id)
        payload = copy.deepcopy(definition.default_data)
        payload.update(data or {})
        inputs, outputs = self.instantiate_ports(definition)
        return NodeInstance(
            id=node_id,
            node_type=node_type,
            category=definition.category,
            label=definition.label,
            position=position or {"x": 0, "y": 0},
            data=payload,
            inputs=inputs,
            outputs=outputs,
        )


catalog = NodeCatalog()
