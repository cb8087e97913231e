"""Static metadata describing MistakeReview."""

APP_NAME = "MistakeReview"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "MistakeReview is a personal study tool. Log the multiple-choice questions you got wrong, "
    "organise them by subject, chapter and type, then drill them in randomized mock tests "
    "and watch your accuracy improve over time."
)
