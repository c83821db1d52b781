"""
Game Boy Emulator GUI
Game display, tile viewer and register panel on top of pygame.
"""

import logging
from typing import List, Optional

import numpy as np
import pygame

from .errors import EmulatorError
from .lcd import SHADES_RGB

logger = logging.getLogger(__name__)


class EmulatorGUI:
    """
    Pygame-based GUI for the DMG emulator.

    Features:
    - Main game display (scaled)
    - Tile viewer (all 384 VRAM tiles)
    - CPU/PPU state display

    The emulator drives the loop: each completed frame is handed to
    _on_frame, which pumps input and redraws. Frame pacing comes from the
    emulator's clock, so turbo just turns throttling off.
    """

    # Colors
    BG_COLOR = (18, 20, 28)
    TEXT_COLOR = (200, 210, 220)
    HIGHLIGHT_COLOR = (80, 140, 200)
    BORDER_COLOR = (50, 55, 65)

    SHADES = np.array(SHADES_RGB, dtype=np.uint8)

    def __init__(self, emulator, scale: int = 3, show_tiles: bool = False):
        self.emulator = emulator
        self.scale = scale
        self.show_tiles = show_tiles

        # Window dimensions
        self.game_width = 160 * scale
        self.game_height = 144 * scale
        self.panel_width = 300 if show_tiles else 0
        self.window_width = self.game_width + 20 + self.panel_width
        self.window_height = max(self.game_height + 60, 600 if show_tiles else 0)

        # Initialize Pygame
        pygame.init()
        cart = emulator.cartridge
        title = cart.title if cart is not None else 'No ROM'
        pygame.display.set_caption(f"DMG Emulator - {title}")
        self.screen = pygame.display.set_mode((self.window_width, self.window_height))
        self.clock = pygame.time.Clock()

        # Fonts
        pygame.font.init()
        self.font = pygame.font.Font(None, 18)
        self.font_title = pygame.font.Font(None, 22)

        # Surfaces
        self.game_surface = pygame.Surface((160, 144))
        self.tiles_surface = pygame.Surface((128, 192))

        # State
        self.running = True
        self.paused = False
        self.turbo_mode = False

        # Key mapping
        self.key_map = {
            pygame.K_z: 'a',
            pygame.K_x: 'b',
            pygame.K_RETURN: 'start',
            pygame.K_RSHIFT: 'select',
            pygame.K_UP: 'up',
            pygame.K_DOWN: 'down',
            pygame.K_LEFT: 'left',
            pygame.K_RIGHT: 'right',
        }

        # FPS tracking
        self.fps_samples: List[float] = []
        self.last_fps = 0.0

    def run(self, max_frames: Optional[int] = None) -> Optional[EmulatorError]:
        """Main GUI loop. Returns the error that ended emulation, if any."""
        self.running = True
        self.emulator.on_frame = self._on_frame
        try:
            fault = self.emulator.run(max_frames)
        finally:
            pygame.quit()
        return fault

    def _on_frame(self, frame: np.ndarray):
        self._handle_events()
        self._update_game_surface(frame)
        self._draw()

        while self.paused and self.running:
            self._handle_events()
            self._draw()
            pygame.time.wait(16)

        self.clock.tick()
        self.fps_samples.append(self.clock.get_fps())
        if len(self.fps_samples) > 30:
            self.fps_samples.pop(0)
            self.last_fps = sum(self.fps_samples) / len(self.fps_samples)

    def _quit(self):
        self.running = False
        self.emulator.stop()

    def _handle_events(self):
        """Handle input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self._quit()

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self._quit()

                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused

                elif event.key == pygame.K_TAB:
                    self.turbo_mode = not self.turbo_mode
                    self.emulator.throttle = not self.turbo_mode
                    logger.debug("Turbo %s", "on" if self.turbo_mode else "off")

                elif event.key in self.key_map:
                    self.emulator.press_button(self.key_map[event.key])

            elif event.type == pygame.KEYUP:
                if event.key in self.key_map:
                    self.emulator.release_button(self.key_map[event.key])

    def _update_game_surface(self, frame: np.ndarray):
        """Map display colours to RGB and copy into the game surface."""
        rgb = self.SHADES[frame]
        pygame.surfarray.blit_array(self.game_surface, rgb.swapaxes(0, 1))

    def _draw(self):
        """Draw all GUI elements."""
        self.screen.fill(self.BG_COLOR)
        self._draw_game_display()
        if self.show_tiles:
            x = self.game_width + 20
            y = self._draw_state(x, 10)
            self._draw_tiles_viewer(x, y + 10)
        pygame.display.flip()

    def _draw_game_display(self):
        x, y = 10, 10

        pygame.draw.rect(self.screen, self.BORDER_COLOR,
                         (x - 2, y - 2, self.game_width + 4, self.game_height + 4), 2)
        scaled = pygame.transform.scale(self.game_surface, (self.game_width, self.game_height))
        self.screen.blit(scaled, (x, y))

        if self.paused:
            pause_text = self.font_title.render("PAUSED", True, (255, 100, 100))
            pause_rect = pause_text.get_rect(center=(x + self.game_width // 2, y + self.game_height // 2))
            pygame.draw.rect(self.screen, (0, 0, 0), pause_rect.inflate(20, 10))
            self.screen.blit(pause_text, pause_rect)

        status = f"FPS: {self.last_fps:.1f}"
        if self.turbo_mode:
            status += "  TURBO"
        text = self.font.render(status, True, self.TEXT_COLOR)
        self.screen.blit(text, (x, y + self.game_height + 8))

        help_text = self.font.render("Arrows  Z=A  X=B  Enter=Start  RShift=Select  "
                                     "Space=Pause  Tab=Turbo  Esc=Quit", True, self.TEXT_COLOR)
        self.screen.blit(help_text, (x, y + self.game_height + 28))

    def _draw_state(self, x: int, y: int) -> int:
        """Draw CPU registers and PPU state."""
        title = self.font_title.render("CPU / PPU", True, self.HIGHLIGHT_COLOR)
        self.screen.blit(title, (x, y))
        y += 22

        cpu = self.emulator.get_cpu_state()
        ppu = self.emulator.get_ppu_state()
        flags = cpu['Flags']
        lines = [
            f"A:{cpu['A']:02X} F:{cpu['F']:02X} B:{cpu['B']:02X} C:{cpu['C']:02X}",
            f"D:{cpu['D']:02X} E:{cpu['E']:02X} H:{cpu['H']:02X} L:{cpu['L']:02X}",
            f"SP:{cpu['SP']:04X} PC:{cpu['PC']:04X}",
            f"> {cpu['Instruction']}",
            f"Z={int(flags['Z'])} N={int(flags['N'])} H={int(flags['H'])} C={int(flags['C'])}"
            f"  IME={int(cpu['IME'])} HALT={int(cpu['Halted'])}",
            f"LY:{ppu['LY']:3d} LYC:{ppu['LYC']:3d} {ppu['Mode']}",
            f"LCDC:{ppu['LCDC']:02X} STAT:{ppu['STAT']:02X} LCD:{'on' if ppu['LCD'] else 'off'}",
        ]
        for line in lines:
            text = self.font.render(line, True, self.TEXT_COLOR)
            self.screen.blit(text, (x, y))
            y += 18
        return y

    def _draw_tiles_viewer(self, x: int, y: int):
        title = self.font_title.render("Tiles (0x8000-0x97FF)", True, self.HIGHLIGHT_COLOR)
        self.screen.blit(title, (x, y))
        y += 22

        tiles = self.SHADES[self.emulator.get_tiles()]
        pygame.surfarray.blit_array(self.tiles_surface, tiles.swapaxes(0, 1))

        w, h = 128 * 2, 192 * 2
        pygame.draw.rect(self.screen, self.BORDER_COLOR, (x - 2, y - 2, w + 4, h + 4), 1)
        self.screen.blit(pygame.transform.scale(self.tiles_surface, (w, h)), (x, y))
