"""Curriculum table and difficulty distribution lookup.

Grades and topics follow the Vietnamese general-education math curriculum.
The distribution table shifts weight from recognition towards application as
learners progress.
"""

from typing import Dict, List, Optional

from .models import DifficultyDistribution, EducationLevel

# Custom topic length bounds, applied after trimming
MIN_CUSTOM_TOPIC_LENGTH = 5
MAX_CUSTOM_TOPIC_LENGTH = 100

CURRICULUM: Dict[EducationLevel, Dict[int, List[str]]] = {
    EducationLevel.PRIMARY: {
        1: [
            "Số tự nhiên từ 0 đến 10",
            "Số tự nhiên từ 11 đến 20",
            "Phép cộng trong phạm vi 20",
            "Phép trừ trong phạm vi 20",
            "Nhận biết hình: Hình tròn, hình vuông, hình tam giác, hình chữ nhật",
            "So sánh độ dài (dài hơn, ngắn hơn)",
            "So sánh khối lượng (nặng hơn, nhẹ hơn)",
        ],
        2: [
            "Số tự nhiên trong phạm vi 100",
            "Phép cộng trong phạm vi 100 (có nhớ và không nhớ)",
            "Phép trừ trong phạm vi 100 (có nhớ và không nhớ)",
            "Bảng nhân 2, 3, 4, 5",
            "Phép nhân với số có một chữ số",
            "Phép chia đơn giản (chia hết)",
            "Hình chữ nhật và hình vuông",
            "Đo độ dài: cm, dm, m",
        ],
        3: [
            "Số tự nhiên trong phạm vi 100 000",
            "Phép cộng, trừ trong phạm vi 100 000",
            "Phép nhân, chia với số có một chữ số",
            "Bảng nhân 6, 7, 8, 9",
            "Hình học: Đoạn thẳng, góc, tam giác, tứ giác",
            "Đo lường: Độ dài, khối lượng, thời gian",
            "Giải toán có lời văn (1-2 bước)",
        ],
        4: [
            "Số tự nhiên trong phạm vi 1 000 000",
            "Phép tính với số có hai chữ số",
            "Phân số đơn giản (tử số nhỏ)",
            "So sánh phân số cùng mẫu số",
            "Hình chữ nhật, hình vuông: Chu vi và diện tích",
            "Bài toán có lời văn (2-3 bước tính)",
            "Đơn vị đo diện tích (cm², dm², m²)",
        ],
        5: [
            "Số thập phân, tính toán với số thập phân",
            "Phép chia có số dư",
            "Phân số: So sánh, cộng, trừ phân số khác mẫu",
            "Rút gọn phân số, quy đồng mẫu số",
            "Hình học: Hình tam giác, hình thang - Diện tích",
            "Hình tròn: Chu vi và diện tích",
            "Bài toán về tỉ lệ, tỉ số phần trăm cơ bản",
        ],
    },
    EducationLevel.MIDDLE: {
        6: [
            "Số nguyên, phép toán với số nguyên",
            "Phân số, số thập phân nâng cao",
            "Tỉ lệ thức, chia tỉ lệ",
            "Hình học: Góc, đường thẳng song song, đường thẳng vuông góc",
            "Số học: Ước, bội, số nguyên tố",
            "Phân tích số ra thừa số nguyên tố",
        ],
        7: [
            "Số hữu tỉ, biểu thức đại số",
            "Đơn thức, đa thức một biến",
            "Phương trình bậc nhất một ẩn",
            "Thống kê: Bảng tần số, biểu đồ",
            "Hình học: Tam giác, các trường hợp bằng nhau của tam giác",
            "Quan hệ giữa các yếu tố trong tam giác",
            "Tam giác cân, tam giác đều",
        ],
        8: [
            "Phân thức đại số",
            "Phương trình bậc nhất hai ẩn, hệ phương trình",
            "Bất phương trình bậc nhất một ẩn",
            "Hình học: Tứ giác, đa giác, diện tích",
            "Hình thang, hình thang cân, hình bình hành",
            "Hình chữ nhật, hình thoi, hình vuông",
            "Định lý Pythagore và ứng dụng",
        ],
        9: [
            "Căn bậc hai, biểu thức chứa căn",
            "Hàm số bậc nhất, đồ thị hàm số y = ax + b",
            "Phương trình bậc hai một ẩn",
            "Công thức nghiệm, công thức nghiệm thu gọn",
            "Hệ thức Vi-et và ứng dụng",
            "Hệ thức lượng trong tam giác vuông",
            "Tỉ số lượng giác của góc nhọn",
            "Đường tròn, dây cung, góc ở tâm, góc nội tiếp",
        ],
    },
    EducationLevel.HIGH: {
        10: [
            "Mệnh đề, mệnh đề phủ định, mệnh đề kéo theo",
            "Tập hợp: Giao, hợp, hiệu, phần bù",
            "Hàm số: Tập xác định, tập giá trị, tính đơn điệu",
            "Hàm số bậc nhất, bậc hai",
            "Phương trình và bất phương trình chứa dấu giá trị tuyệt đối",
            "Vectơ: Định nghĩa, phép toán",
            "Tọa độ của vectơ trong mặt phẳng",
            "Tích vô hướng của hai vectơ",
            "Phương trình đường thẳng, đường tròn",
        ],
        11: [
            "Hàm số lượng giác",
            "Công thức lượng giác cơ bản",
            "Công thức cộng, công thức nhân đôi, công thức biến đổi",
            "Phương trình lượng giác cơ bản",
            "Dãy số: Cách cho dãy số, giới hạn dãy số",
            "Cấp số cộng, cấp số nhân",
            "Giới hạn của hàm số, hàm số liên tục",
            "Đạo hàm: Định nghĩa, ý nghĩa, quy tắc tính",
            "Hình học không gian: Đường thẳng và mặt phẳng",
            "Quan hệ song song và vuông góc trong không gian",
        ],
        12: [
            "Khảo sát hàm số bậc ba, bậc bốn trùng phương",
            "Khảo sát hàm số nhất biến (phân thức)",
            "Tiếp tuyến của đồ thị hàm số",
            "Cực trị của hàm số",
            "Giá trị lớn nhất, giá trị nhỏ nhất",
            "Hàm số mũ và hàm số logarit",
            "Phương trình, bất phương trình mũ và logarit",
            "Nguyên hàm: Định nghĩa, tính chất",
            "Tích phân và ứng dụng (diện tích, thể tích)",
            "Số phức: Định nghĩa, phép toán",
            "Hệ tọa độ trong không gian Oxyz",
            "Phương trình mặt phẳng, đường thẳng trong không gian",
            "Mặt cầu, khoảng cách trong không gian",
        ],
    },
}


def grades_for(level: EducationLevel) -> List[int]:
    """Grades taught at an education level, in ascending order."""
    return sorted(CURRICULUM[EducationLevel(level)])


def topics_for(level: EducationLevel, grade: int) -> List[str]:
    """Suggested topics for a grade.

    Raises:
        ValueError: If the grade does not belong to the level
    """
    validate_grade(level, grade)
    return list(CURRICULUM[EducationLevel(level)][grade])


def validate_grade(level: EducationLevel, grade: int) -> None:
    """Raise ValueError unless the grade belongs to the education level."""
    level = EducationLevel(level)
    if grade not in CURRICULUM[level]:
        raise ValueError(
            f"Grade {grade} is not part of level '{level.value}' "
            f"(expected one of {grades_for(level)})"
        )


def resolve_topic(selected_topic: str, custom_topic: Optional[str] = None) -> str:
    """Pick the topic for a quiz.

    A non-blank custom topic takes precedence over the selected curriculum
    topic and must be between 5 and 100 characters after trimming.

    Args:
        selected_topic: Topic chosen from the curriculum list
        custom_topic: Free-text topic typed by the learner

    Returns:
        The topic to generate questions for

    Raises:
        ValueError: If the custom topic length is out of range, or no topic
            is given at all
    """
    custom = (custom_topic or "").strip()
    if custom:
        if not MIN_CUSTOM_TOPIC_LENGTH <= len(custom) <= MAX_CUSTOM_TOPIC_LENGTH:
            raise ValueError(
                f"Custom topic must be {MIN_CUSTOM_TOPIC_LENGTH}-"
                f"{MAX_CUSTOM_TOPIC_LENGTH} characters"
            )
        return custom

    topic = (selected_topic or "").strip()
    if not topic:
        raise ValueError("A topic is required")
    return topic


def get_distribution(level: EducationLevel, grade: int) -> DifficultyDistribution:
    """Look up the per-tier question counts for a level and grade.

    The first two primary grades lean heavily on recognition; middle school is
    centred on understanding; high school weights understanding and
    application equally.
    """
    level = EducationLevel(level)
    if level == EducationLevel.PRIMARY:
        if grade in (1, 2):
            return DifficultyDistribution(recognition=12, understanding=6, application=2)
        return DifficultyDistribution(recognition=10, understanding=6, application=4)

    if level == EducationLevel.MIDDLE:
        return DifficultyDistribution(recognition=6, understanding=8, application=6)

    return DifficultyDistribution(recognition=4, understanding=8, application=8)
