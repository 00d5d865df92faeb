"""
Storyteller - Prompt Templates

Prompt text for lyric lookup and storyboard generation.
"""

from core.models import SongIdentity, StoryboardConfig

# ============================================================================
# Templates
# ============================================================================

LYRICS_LOOKUP_TEMPLATE = """Find the full song lyrics for the song titled "{title}" by the artist "{artist}".
If you find multiple versions, prioritize the most official or widely accepted version.
Do not generate lyrics, only find existing ones. Provide the exact lyrics.
"""

STORYBOARD_TEMPLATE = """
ROLE: You are an expert Visual Storyteller and Music Video Director.

TASK: Generate a comprehensive storyboard and visual treatment for a {duration} animated video based on the song provided. Your output must be highly structured and detailed to ensure scene-to-scene consistency.

SONG DETAILS:
* Title: {title}
* Artist: {artist}
* Lyrics:
\"\"\"
{lyrics}
\"\"\"

CONSTRAINTS:
* Total Length: {duration}.
* Visual Style: "{style_label}" ({style_notes}).
* Aspect Ratio: {aspect_ratio}.

REQUIRED OUTPUT (Follow this 3-part structure exactly):

---

### Part 1: Lyrical & Narrative Analysis

1.  **Core Theme(s):** (e.g., Betrayal, Redemption, Loss, Wanderlust)
2.  **Tone & Mood:** (e.g., Somber, Aggressive, Hopeful, Nostalgic)
3.  **Key Visual Imagery:** (List of 5-10 strong visual motifs from the lyrics. e.g., "broken glass," "dusty road," "setting sun")
4.  **The Hook:** (Identify the song's key lyrical and emotional climax).
5.  **Narrative Arc (Hero's Journey):** Map the song's story to a simplified Hero's Journey, even if it's for an anti-hero.
    *   **The Call:**
    *   **The Ordeal/Conflict:**
    *   **The Resolution/Return:**

---

### Part 2: Character Profiles

Create detailed, consistent profiles for all main characters.

*   **Character 1: [Archetype, e.g., "The Outlaw"]**
    *   **Age:**
    *   **Physical Attributes:** (Height, build, hair, face. Must align with the {style_label} style).
    *   **Key Attire/Features:** (Consistent items they always wear, e.g., "a worn, wide-brimmed hat," "a silver locket," "a scar over the left eye").

*   **Character 2: [Archetype, e.g., "The Pursuer"]**
    *   **Age:**
    *   **Physical Attributes:**
    *   **Key Attire/Features:**

---

### Part 3: Scene-by-Scene Storyboard (Approx. {min_scenes}-{max_scenes} Scenes)

Generate the complete list of all scenes required for the {duration} video.

*   **Scene 1**
    *   **Est. Timecode:** 0:00 - 0:15
    *   **Relevant Lyrics:** [Quote the lyric(s) this scene visualizes]
    *   **Scene Description:** [Describe the action, character emotion, and camera movement.]
    *   **Visual Direction ({style_tag}):** [Describe the setting, lighting, and composition. Be specific about shadows, color palette, and character placement.]

*   **Scene 2**
    *   **Est. Timecode:** 0:15 - 0:30
    *   **Relevant Lyrics:** [...]
    *   **Scene Description:** [...]
    *   **Visual Direction ({style_tag}):** [...]

(Continue for all scenes, mapping out the full {duration} video)
"""


# ============================================================================
# Builders
# ============================================================================


def build_lyrics_prompt(title: str, artist: str) -> str:
    """Build the grounded lyric lookup prompt."""
    return LYRICS_LOOKUP_TEMPLATE.format(title=title, artist=artist)


def build_storyboard_prompt(
    identity: SongIdentity,
    lyrics: str,
    config: StoryboardConfig,
) -> str:
    """
    Build the storyboard generation prompt.

    Args:
        identity: Song title and artist
        lyrics: Lyrics text
        config: Fixed treatment parameters

    Returns:
        Prompt text
    """
    return STORYBOARD_TEMPLATE.format(
        title=identity.title,
        artist=identity.artist,
        lyrics=lyrics,
        duration=config.target_duration,
        style_label=config.style_label,
        style_notes=config.style_notes,
        style_tag=config.style_tag,
        aspect_ratio=config.aspect_ratio.value,
        min_scenes=config.min_scenes,
        max_scenes=config.max_scenes,
    )
