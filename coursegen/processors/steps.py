"""Step labels and progress values reported by the processors."""

INITIALIZING = "Initializing"

# Course generation
COURSE_DESCRIPTION = ("Generating course description", 5)
COURSE_THUMBNAIL = ("Generating course thumbnail", 10)
COURSE_BANNER = ("Generating course banner", 18)
COURSE_TOPICS_START = 25
COURSE_TOPICS_END = 90
COURSE_SAVING = ("Saving course", 95)
COURSE_COMPLETED = "Course generation completed"

# Topic generation
TOPIC_OVERVIEW = ("Generating topic overview", 20)
TOPIC_THUMBNAIL = ("Generating topic thumbnail", 40)
TOPIC_BANNER = ("Generating topic banner", 55)
TOPIC_SUBTOPICS_START = 60
TOPIC_SUBTOPICS_END = 95
TOPIC_COMPLETED = "Topic generation completed"

# Subtopic generation
SUBTOPIC_CONTENT = ("Generating subtopic content", 10)
SUBTOPIC_THUMBNAIL = ("Generating subtopic thumbnail", 50)
SUBTOPIC_BANNER = ("Generating subtopic banner", 70)
SUBTOPIC_COMPLETED = "Subtopic generation completed"

# Image generation
IMAGE_GENERATING = ("Generating image", 50)
IMAGE_COMPLETED = "Image generation completed"


def course_image_total(num_topics: int, mode: str) -> int:
    """Course thumbnail and banner plus two images per realized topic."""
    realized = num_topics if mode == "full" else 1
    return 2 + 2 * realized


def spread(start: float, end: float, done: int, total: int) -> float:
    """Progress value for ``done`` of ``total`` units between start and end."""
    if total <= 0:
        return end
    return round(start + (end - start) * done / total, 2)
