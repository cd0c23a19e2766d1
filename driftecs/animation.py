"""Frame-based sprite animation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .app import App, Plugin, Time
from .components import Rect, Sprite
from .query import Query
from .scheduler import AccessDescriptor, AccessMode, Phase
from .world import World

__all__ = ["AnimationClip", "SpriteAnimator", "sprite_animation_update", "SpriteAnimationPlugin"]


@dataclass
class AnimationClip:
    """A sequence of source rectangles shown for ``frame_duration`` seconds each."""

    frames: list[Rect] = field(default_factory=list)
    frame_duration: float = 0.1
    looping: bool = True
    name: str = ""

    def __post_init__(self) -> None:
        if self.frame_duration <= 0:
            raise ValueError("frame_duration must be positive")


@dataclass
class SpriteAnimator:
    clips: list[AnimationClip] = field(default_factory=list)
    current_clip: int = 0
    current_frame: int = 0
    elapsed: float = 0.0
    playing: bool = True


def sprite_animation_update(world: World, dt: float) -> None:
    """Advance every playing animator by ``dt`` and update its sprite's source rect."""
    for animator, sprite in Query(world, SpriteAnimator, Sprite).iter():
        if not animator.playing or not animator.clips:
            continue
        if not 0 <= animator.current_clip < len(animator.clips):
            continue
        clip = animator.clips[animator.current_clip]
        if not clip.frames:
            continue

        animator.elapsed += dt
        while animator.elapsed >= clip.frame_duration:
            animator.elapsed -= clip.frame_duration
            animator.current_frame += 1
            if animator.current_frame >= len(clip.frames):
                if clip.looping:
                    animator.current_frame = 0
                else:
                    animator.current_frame = len(clip.frames) - 1
                    animator.playing = False
                    break

        sprite.src_rect = replace(clip.frames[animator.current_frame])


class SpriteAnimationPlugin(Plugin):
    def build(self, app: App) -> None:
        app.world.register_component(SpriteAnimator, "SpriteAnimator")

        def update() -> None:
            time_res = app.get_resource(Time)
            sprite_animation_update(app.world, time_res.delta if time_res else 0.0)

        app.add_system(
            "sprite_animation_update",
            Phase.POST_UPDATE,
            update,
            deps=[
                AccessDescriptor(Time, AccessMode.READ),
                AccessDescriptor(SpriteAnimator, AccessMode.WRITE),
                AccessDescriptor(Sprite, AccessMode.WRITE),
            ],
        )