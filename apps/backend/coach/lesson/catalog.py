"""Bundled practice lessons."""
from typing import Optional
from coach.schemas.lesson import Lesson, LessonInfo
from coach.lesson.segmenter import segment


GARDEN_LESSON = Lesson(
    lesson_id="home-garden",
    title="Cultivating a Green Space: Starting a Small Home Garden",
    source_text=(
        "Bắt đầu một khu vườn tại nhà có thể mang lại nhiều lợi ích. "
        "Nó mang lại không khí trong lành, niềm vui và thức ăn. "
        "Đầu tiên, hãy chọn một vị trí thích hợp. "
        "Những nơi có nắng là lý tưởng cho cây trồng. "
        "Bắt đầu với những loại cây dễ trồng như thảo mộc hoặc rau. "
        "Các loại thảo mộc như húng quế và mùi tây phát triển nhanh. "
        "Các loại rau như cà chua và rau diếp cũng phát triển mạnh trong không gian nhỏ. "
        "Tiếp theo, hãy chuẩn bị đất. "
        "Đất tốt rất giàu chất dinh dưỡng. "
        "Thêm phân trộn có thể giúp cải thiện chất lượng đất. "
        "Tưới nước thường xuyên, nhưng tránh tưới quá nhiều. "
        "Cây cần độ ẩm, nhưng quá nhiều có thể gây hại cho cây. "
        "Ngoài ra, hãy cân nhắc sử dụng các thùng chứa. "
        "Chúng hoàn hảo cho không gian hạn chế và sân trong. "
        "Nghiên cứu các loại cây khác nhau để phù hợp với khí hậu địa phương. "
        "Một khu vườn nhỏ có thể cung cấp sản phẩm tươi quanh năm không? "
        "Làm vườn tại nhà có thể mang lại những lợi ích gì? "
        "Làm vườn không chỉ là trồng cây; mà là kết nối với thiên nhiên."
    ),
    references=[
        "Starting a garden at home can bring a lot of benefits.",
        "It brings fresh air, joy, and food.",
        "First, choose a suitable location.",
        "Sunny spots are ideal for planting.",
        "Start with easy-to-grow plants like herbs or vegetables.",
        "Herbs like basil and parsley grow quickly.",
        "Vegetables like tomatoes and lettuce also thrive in small spaces.",
        "Next, prepare the soil.",
        "Good soil is rich in nutrients.",
        "Adding compost can help improve soil quality.",
        "Water regularly, but avoid overwatering.",
        "Plants need moisture, but too much can harm them.",
        "Also, consider using containers.",
        "They are perfect for limited spaces and patios.",
        "Research different plant varieties to suit the local climate.",
        "Can a small garden provide fresh produce year-round?",
        "What benefits can home gardening bring?",
        "Gardening is not just about planting; it's about connecting with nature.",
    ],
)

LESSONS: dict[str, Lesson] = {GARDEN_LESSON.lesson_id: GARDEN_LESSON}


def get_lesson(lesson_id: str) -> Optional[Lesson]:
    return LESSONS.get(lesson_id)


def list_lessons() -> list[LessonInfo]:
    return [
        LessonInfo(lesson_id=lesson.lesson_id, title=lesson.title, sentence_count=len(segment(lesson.source_text)))
        for lesson in LESSONS.values()
    ]
