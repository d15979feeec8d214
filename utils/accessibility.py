"""
Accessibility preferences for the site-wide accessibility widget.

Israeli accessibility regulations require every page to offer font resizing, contrast modes,
a large cursor, readable fonts, link/heading highlighting and a way to stop animations.
The preferences are a small flat object persisted as JSON (camelCase keys, same shape the
browser widget keeps under `accessibilityPrefs`) and applied as attributes/classes on the
document root (<html>).
"""
import json

FONT_SIZE_DEFAULT = 100 # Percent of the browser default.
FONT_SIZE_MIN = 80
FONT_SIZE_MAX = 200
FONT_SIZE_STEP = 10

CONTRAST_MODES = ('normal', 'high', 'invert')
CURSOR_SIZES = ('normal', 'large')

# Boolean preference -> class added to <html> while it is on. Order is the order classes are emitted.
TOGGLE_CLASSES = (
    ('highlight_links', 'highlight-links'),
    ('readable_font', 'readable-font'),
    ('stop_animations', 'stop-animations'),
    ('highlight_headings', 'highlight-headings'),
)

# Python attribute -> key in the stored JSON blob.
STORAGE_KEYS = {
    'font_size': 'fontSize',
    'contrast': 'contrast',
    'highlight_links': 'highlightLinks',
    'cursor': 'cursor',
    'readable_font': 'readableFont',
    'stop_animations': 'stopAnimations',
    'highlight_headings': 'highlightHeadings',
}

# Widget action name -> (method, whether it takes a value).
ACTIONS = {
    'increase-font': ('increase_font_size', False),
    'decrease-font': ('decrease_font_size', False),
    'contrast': ('set_contrast', True),
    'cursor': ('set_cursor', True),
    'toggle-links': ('toggle_highlight_links', False),
    'toggle-readable-font': ('toggle_readable_font', False),
    'toggle-animations': ('toggle_animations', False),
    'toggle-headings': ('toggle_highlight_headings', False),
    'reset': ('reset', False),
}

LABELS = {
    'hebrew': {
        'title': 'נגישות',
        'increaseFontSize': 'הגדל גופן',
        'decreaseFontSize': 'הקטן גופן',
        'contrast': 'ניגודיות',
        'normalContrast': 'רגיל',
        'highContrast': 'גבוהה',
        'invertContrast': 'הפוך',
        'highlightLinks': 'הדגש קישורים',
        'highlightHeadings': 'הדגש כותרות',
        'cursor': 'סמן עכבר',
        'normalCursor': 'רגיל',
        'bigCursor': 'גדול',
        'readableFont': 'גופן קריא',
        'stopAnimations': 'עצור אנימציות',
        'reset': 'אפס הגדרות',
        'close': 'סגור',
        'statement': 'הצהרת נגישות',
        'keyboardHint': 'לחץ Tab לניווט עם מקלדת',
    },
    'english': {
        'title': 'Accessibility',
        'increaseFontSize': 'Increase Font',
        'decreaseFontSize': 'Decrease Font',
        'contrast': 'Contrast',
        'normalContrast': 'Normal',
        'highContrast': 'High',
        'invertContrast': 'Invert',
        'highlightLinks': 'Highlight Links',
        'highlightHeadings': 'Highlight Headings',
        'cursor': 'Cursor',
        'normalCursor': 'Normal',
        'bigCursor': 'Large',
        'readableFont': 'Readable Font',
        'stopAnimations': 'Stop Animations',
        'reset': 'Reset Settings',
        'close': 'Close',
        'statement': 'Accessibility Statement',
        'keyboardHint': 'Press Tab for keyboard navigation',
    },
}

RTL_LANGUAGES = ('hebrew',)


def normalize_language(language):
    """Anything other than Hebrew falls back to English."""
    return 'hebrew' if language in ('hebrew', 'he', 'he-IL') else 'english'


def labels(language):
    return LABELS[normalize_language(language)]


def text_direction(language):
    return 'rtl' if normalize_language(language) in RTL_LANGUAGES else 'ltr'


class AccessibilityPreferences:
    """
    The seven widget settings plus the operations behind each widget button.

    Every mutating method changes the object in place and returns it, so a route can do
    `prefs.increase_font_size().to_json()`.
    """

    def __init__(self, font_size=FONT_SIZE_DEFAULT, contrast='normal', highlight_links=False,
                 cursor='normal', readable_font=False, stop_animations=False, highlight_headings=False):
        self.font_size = font_size
        self.contrast = contrast
        self.highlight_links = highlight_links
        self.cursor = cursor
        self.readable_font = readable_font
        self.stop_animations = stop_animations
        self.highlight_headings = highlight_headings

    # --- Widget operations ---

    def increase_font_size(self):
        self.font_size = min(self.font_size + FONT_SIZE_STEP, FONT_SIZE_MAX)
        return self

    def decrease_font_size(self):
        self.font_size = max(self.font_size - FONT_SIZE_STEP, FONT_SIZE_MIN)
        return self

    def set_contrast(self, mode):
        if mode not in CONTRAST_MODES:
            raise ValueError(f"Contrast must be one of: {', '.join(CONTRAST_MODES)}.")
        self.contrast = mode
        return self

    def set_cursor(self, size):
        if size not in CURSOR_SIZES:
            raise ValueError(f"Cursor must be one of: {', '.join(CURSOR_SIZES)}.")
        self.cursor = size
        return self

    def toggle_highlight_links(self):
        self.highlight_links = not self.highlight_links
        return self

    def toggle_readable_font(self):
        self.readable_font = not self.readable_font
        return self

    def toggle_animations(self):
        self.stop_animations = not self.stop_animations
        return self

    def toggle_highlight_headings(self):
        self.highlight_headings = not self.highlight_headings
        return self

    def reset(self):
        defaults = AccessibilityPreferences()
        for attr in STORAGE_KEYS:
            setattr(self, attr, getattr(defaults, attr))
        return self

    # --- Applying to the document ---

    def root_classes(self):
        return [css_class for attr, css_class in TOGGLE_CLASSES if getattr(self, attr)]

    def root_attributes(self):
        """
        Attributes to put on the document root so the accessibility stylesheet takes effect.

        Returns:
            dict: {'style', 'data-contrast', 'data-cursor', 'class'}; 'class' is a space-separated string.
        """
        return {
            'style': f'font-size: {self.font_size}%',
            'data-contrast': self.contrast,
            'data-cursor': self.cursor,
            'class': ' '.join(self.root_classes()),
        }

    # --- Persistence ---

    def to_dict(self):
        return {key: getattr(self, attr) for attr, key in STORAGE_KEYS.items()}

    def to_json(self):
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data):
        """
        Builds preferences from a stored blob.

        Missing or falsy fields fall back to their defaults, as the widget does when it loads
        saved preferences. Values that are present but invalid (an unknown contrast mode,
        an out-of-range font size) are replaced by the default too, so a tampered cookie can't
        put the page into a state the widget can't represent.
        """
        if not isinstance(data, dict):
            return cls()

        prefs = cls()
        font_size = data.get('fontSize')
        if isinstance(font_size, (int, float)) and not isinstance(font_size, bool) and font_size:
            prefs.font_size = min(max(int(font_size), FONT_SIZE_MIN), FONT_SIZE_MAX)
        if data.get('contrast') in CONTRAST_MODES:
            prefs.contrast = data['contrast']
        if data.get('cursor') in CURSOR_SIZES:
            prefs.cursor = data['cursor']
        for attr, _css_class in TOGGLE_CLASSES:
            setattr(prefs, attr, bool(data.get(STORAGE_KEYS[attr])))
        return prefs

    @classmethod
    def from_json(cls, raw):
        """Parses a stored JSON blob; empty or malformed input yields the defaults."""
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            return cls()
        return cls.from_dict(data)

    def apply_action(self, action, value=None):
        """
        Runs one widget button by its action name (see ACTIONS).

        Raises:
            KeyError: Unknown action.
            ValueError: Bad value for 'contrast' or 'cursor'.
        """
        method_name, takes_value = ACTIONS[action]
        method = getattr(self, method_name)
        return method(value) if takes_value else method()

    def __eq__(self, other):
        if not isinstance(other, AccessibilityPreferences):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f'<AccessibilityPreferences {self.to_json()}>'
