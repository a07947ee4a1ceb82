"""Static metadata describing QuizDesk."""

APP_NAME = "QuizDesk"
APP_VERSION = "0.1.0"
APP_ABOUT_TEXT = (
    "QuizDesk lets teachers author quizzes and students take them. "
    "Answers are saved as they are selected, graded on submission, "
    "and rolled up into per-quiz and per-student statistics."
)
