from typing import Optional

TEMPLATES = ("default", "empty", "character_2d", "character_3d")

_DEFAULT_BODY = """

# Called when the node enters the scene tree for the first time.
func _ready() -> void:
\tpass


# Called every frame. 'delta' is the elapsed time since the previous frame.
func _process(delta: float) -> void:
\tpass
"""

_CHARACTER_2D_BODY = """

const SPEED = 300.0
const JUMP_VELOCITY = -400.0


func _physics_process(delta: float) -> void:
\t# Add the gravity.
\tif not is_on_floor():
\t\tvelocity += get_gravity() * delta

\t# Handle jump.
\tif Input.is_action_just_pressed("ui_accept") and is_on_floor():
\t\tvelocity.y = JUMP_VELOCITY

\tvar direction := Input.get_axis("ui_left", "ui_right")
\tif direction:
\t\tvelocity.x = direction * SPEED
\telse:
\t\tvelocity.x = move_toward(velocity.x, 0, SPEED)

\tmove_and_slide()
"""

_CHARACTER_3D_BODY = """

const SPEED = 5.0
const JUMP_VELOCITY = 4.5


func _physics_process(delta: float) -> void:
\t# Add the gravity.
\tif not is_on_floor():
\t\tvelocity += get_gravity() * delta

\t# Handle jump.
\tif Input.is_action_just_pressed("ui_accept") and is_on_floor():
\t\tvelocity.y = JUMP_VELOCITY

\tvar input_dir := Input.get_vector("ui_left", "ui_right", "ui_up", "ui_down")
\tvar direction := (transform.basis * Vector3(input_dir.x, 0, input_dir.y)).normalized()
\tif direction:
\t\tvelocity.x = direction.x * SPEED
\t\tvelocity.z = direction.z * SPEED
\telse:
\t\tvelocity.x = move_toward(velocity.x, 0, SPEED)
\t\tvelocity.z = move_toward(velocity.z, 0, SPEED)

\tmove_and_slide()
"""

_TEMPLATE_DEFAULTS = {
    "character_2d": ("CharacterBody2D", _CHARACTER_2D_BODY),
    "character_3d": ("CharacterBody3D", _CHARACTER_3D_BODY),
    "default": (None, _DEFAULT_BODY),
    "empty": (None, "\n"),
}


def render_script(extends: str = "Node", class_name: Optional[str] = None, template: str = "default") -> str:
    if template not in _TEMPLATE_DEFAULTS:
        raise ValueError(f"Unknown script template: {template}. Expected one of: {', '.join(TEMPLATES)}")
    base, body = _TEMPLATE_DEFAULTS[template]
    # Character templates require a body base class.
    if base is not None and extends == "Node":
        extends = base
    header = f"extends {extends}\n"
    if class_name:
        header = f"class_name {class_name}\n" + header
    return header + body
