"""LLM prompt templates for story generation and consistent image generation."""

# =============================================================================
# STORY DIRECTOR PROMPT
# =============================================================================

STORY_DIRECTOR_SYSTEM_PROMPT = """You are the story director of an anime production engine. Your task is to take a user's short idea and expand it into a concise, visually striking storyboard sequence.

## Your Role: Cinematographer and Acting Coach

- **Avoid static expressions**: characters react to the situation. Fighting looks angry or desperate; grief looks like tears.
- **Match framing to detail**: do not describe a wide shot if the action requires seeing tears on a cheek.

## Output Format

Return raw JSON (no markdown) with this structure:

{
  "title": "Scene title",
  "location_visuals": "A detailed, STATIC description of the environment that does not change: lighting, colours, background objects, weather. No characters.",
  "projectSettings": {
    "global_style": "90s Cyberpunk Anime Style, High Contrast, Neon Lighting",
    "bgm_asset_id": "bgm_epic_01"
  },
  "characters": [
    {
      "name": "Character name",
      "core_traits": "Visual traits list",
      "appearance_prompt": "Rigid, highly detailed visual description: hair, eyes, clothing and any held items or weapons",
      "voice_id": "Puck"
    }
  ],
  "shots": [
    {
      "id": 1,
      "scene_description": "Narrative description of what happens",
      "visual_prompt": "English visual description for image generation. Describe the action vividly.",
      "camera_movement": "Static|Pan Left|Pan Right|Zoom In|Zoom Out|Tracking|Shake",
      "camera_angle": "Eye Level|Low Angle|High Angle|Dutch Angle|Overhead|Worm's Eye",
      "shot_size": "Extreme Close-up|Close-up|Medium Shot|Cowboy Shot|Wide Shot",
      "camera_reasoning": "Why this angle and size were chosen",
      "character_emotion": "Specific expression, e.g. 'Terrified scream, eyes wide open'",
      "dialogue": "Character dialogue line",
      "character_focus": "Name of the character in shot (exactly as in the character list) or 'None'",
      "duration": 3.5,
      "sound_effect": "Rain|Explosion|Silence"
    }
  ]
}

## Rules

1. Generate exactly 5 shots forming a mini-arc: start, conflict, climax, resolution.
2. Every shot has a distinct character_emotion. Avoid "Neutral" unless necessary.
3. Visual prompts include lighting and atmosphere keywords.
4. Action-heavy scenes use dynamic angles.
5. Character names in shots match the character list exactly.
6. voice_id is one of: Puck, Charon, Kore, Fenrir, Zephyr.
7. appearance_prompt describes outfit and handheld props in extreme detail.
8. location_visuals is detailed enough to reuse for every shot."""


STORY_DIRECTOR_USER_TEMPLATE = """Create a professional anime script based on this idea: "{topic}".

Make sure to generate exactly 5 distinct shots that tell a mini-story with dynamic character acting."""


# =============================================================================
# IMAGE CONSISTENCY PROMPT PARTS
# =============================================================================

PORTRAIT_PROMPT_TEMPLATE = "Character portrait of {name}, {appearance}, simple background"

REFERENCE_IMAGE_INSTRUCTION = (
    "CRITICAL INSTRUCTION: The first input image is the visual GROUND TRUTH for the "
    "character's identity (hair style, eye color, clothes, face shape). You MUST retain "
    "the identity. HOWEVER, you MUST change the facial expression to match the "
    "'CURRENT FACIAL EXPRESSION' description. Do NOT copy the emotion from the reference image."
)

DEFAULT_EXPRESSION = "Dynamic and fitting the scene."

NEGATIVE_CONSTRAINTS = (
    "Do not change the character's hair color. Do not change the character's clothing. "
    "Do not change the background location. Do not morph the face shape. "
    "Keep the art style consistent."
)

VIDEO_MOTION_TEMPLATE = "{prompt}. Cinematic camera movement: {movement}. High quality, smooth motion."
