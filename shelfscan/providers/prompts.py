"""
Vision Prompts

Fixed prompt contract sent to every vision backend. The shelf prompt defines
the bracket-prefix readability protocol parsed by the normalizer.
"""

from dataclasses import dataclass


@dataclass
class VisionPrompts:
    """
    Prompt templates for cover and shelf analysis.
    """

    SINGLE_BOOK_PROMPT = """Analyze this book cover and extract the following information in JSON format:
{
  "title": "book title",
  "author": "author name",
  "isbn": "ISBN if visible",
  "publisher": "publisher name",
  "year": year as number,
  "category": "book category",
  "language": "2-letter language code"
}

If a field is not visible, use null. Be precise and extract only visible information."""

    SHELF_PROMPT = """You are helping me catalog books from my personal library bookshelf. Identify ALL visible books in this photo.

BOOK ORIENTATION:
- Books usually stand vertically on the shelf
- Some books may be angled, leaning, or lying horizontally
- Spine text may read top-to-bottom (common in English publishing) or bottom-to-top (common in European publishing)
- Mentally rotate the text when needed to read it correctly

For each book, provide:
1. Title (as shown on the spine or cover)
2. Author (if visible)
3. ISBN (if visible)
4. Location on the shelf (normalized 0-1 coordinates, 0,0 is top-left and 1,1 is bottom-right)
5. How confident you are in your reading (0-1)

Return a single JSON object with this structure:
{
  "books": [
    {
      "title": "Book Title",
      "author": "Author Name or null",
      "isbn": "ISBN if visible or null",
      "position": {
        "x": 0.1,
        "y": 0.2,
        "width": 0.05,
        "height": 0.7
      },
      "confidence": 0.95
    }
  ]
}

BE HONEST ABOUT READABILITY:
- If you CANNOT read the title, use "[unreadable]" as the title
- If you can only read PART of the title, prefix it with "[partial] " and include only what you can actually read
- If you are not fully certain of the reading, prefix it with "[uncertain] "
- NEVER invent titles when text is blurry, occluded, or at a bad angle
- NEVER make up words you cannot clearly see
- Marking a book unreadable is better than guessing wrong

CONFIDENCE SCORING:
- 0.9-1.0: Title is crystal clear, fully readable, no doubt
- 0.7-0.89: Title is readable but some letters are unclear or lighting is poor
- 0.5-0.69: Title is partially readable, significant uncertainty, bad angle or blur
- 0.3-0.49: Can barely make out some letters, mostly guessing
- 0.0-0.29: Cannot read the title at all

Be CONSERVATIVE with confidence scores. If in doubt, lower the score.

LOCATION - EACH BOOK HAS ITS OWN WIDTH:
For EACH individual spine:
1. Find where its LEFT edge begins
2. Find where its RIGHT edge ends
3. width = RIGHT edge minus LEFT edge
4. Thick books are wider (0.05-0.15), thin books are narrower (0.01-0.04)

Coordinates (all normalized 0-1):
- x: left edge of THIS book
- y: top edge of the book
- width: measured width of THIS book's spine
- height: full height of the book

Typical widths:
- Thin paperback: 0.015
- Normal book: 0.03-0.05
- Thick hardcover: 0.08-0.12
- Very thick book: 0.15+

MEASURE EACH BOOK INDIVIDUALLY. DO NOT use the same width for every book.

OTHER NOTES:
- List ALL visible books, no matter how many
- Order books left to right, top to bottom
- If the author is not visible, use null
- Boxes may overlap slightly when books lean or the photo is tilted"""

    # Appended for backends without a JSON response mode
    JSON_ONLY_SUFFIX = """

Respond with the JSON object only, without any surrounding text or code fences."""

    @classmethod
    def single_book(cls, structured_output: bool = True) -> str:
        if structured_output:
            return cls.SINGLE_BOOK_PROMPT
        return cls.SINGLE_BOOK_PROMPT + cls.JSON_ONLY_SUFFIX

    @classmethod
    def shelf(cls, structured_output: bool = True) -> str:
        if structured_output:
            return cls.SHELF_PROMPT
        return cls.SHELF_PROMPT + cls.JSON_ONLY_SUFFIX
